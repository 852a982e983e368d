import uuid

import pytest

from app.models.coordination import AssignmentRole, HistoryAction
from app.services.assignment import assignments
from app.services.errors import MatterClosed, NotFound
from app.services.history import history


class TestAssign:
    def test_assign_mirrors_onto_matter(self, db_session, matter, actor_id):
        associate = uuid.uuid4()
        row = assignments.assign(db_session, matter.id, "associate", associate, actor_id)

        assert row.role == AssignmentRole.associate
        assert row.user_id == associate
        assert row.assigned_by_id == actor_id
        db_session.refresh(matter)
        assert matter.assigned_associate_id == associate
        assert matter.version == 2
        assert assignments.current_assignee(db_session, matter.id, "associate") == associate

        (event,) = history.timeline(db_session, matter.id)
        assert event.action == HistoryAction.case_assigned
        assert event.payload["previous_user_id"] is None

    def test_reassign_supersedes_previous(self, db_session, matter, actor_id):
        first, second = uuid.uuid4(), uuid.uuid4()
        assignments.assign(db_session, matter.id, "case_manager", first, actor_id)
        assignments.assign(db_session, matter.id, "case_manager", second, actor_id)

        assert (
            assignments.current_assignee(db_session, matter.id, "case_manager") == second
        )
        rows = assignments.assignment_history(db_session, matter.id, "case_manager")
        assert [r.user_id for r in rows] == [second, first]
        assert rows[0].superseded_at is None
        assert rows[1].superseded_at is not None

        latest = history.timeline(db_session, matter.id)[0]
        assert latest.payload["previous_user_id"] == str(first)

    def test_same_user_still_audited(self, db_session, matter, actor_id):
        user = uuid.uuid4()
        assignments.assign(db_session, matter.id, "associate", user, actor_id)
        assignments.assign(db_session, matter.id, "associate", user, actor_id)
        assert len(assignments.assignment_history(db_session, matter.id)) == 2
        assert len(history.timeline(db_session, matter.id)) == 2

    def test_clear_role(self, db_session, matter, actor_id):
        assignments.assign(db_session, matter.id, "associate", uuid.uuid4(), actor_id)
        assignments.assign(db_session, matter.id, "associate", None, actor_id)
        db_session.refresh(matter)
        assert matter.assigned_associate_id is None
        assert assignments.current_assignee(db_session, matter.id, "associate") is None

    def test_roles_are_independent(self, db_session, matter, actor_id):
        associate, manager = uuid.uuid4(), uuid.uuid4()
        assignments.assign(db_session, matter.id, "associate", associate, actor_id)
        assignments.assign(db_session, matter.id, "case_manager", manager, actor_id)
        assert assignments.current_assignee(db_session, matter.id, "associate") == associate
        assert len(assignments.assignment_history(db_session, matter.id)) == 2

    def test_closed_matter(self, db_session, closed_matter, actor_id):
        with pytest.raises(MatterClosed):
            assignments.assign(
                db_session, closed_matter.id, "associate", uuid.uuid4(), actor_id
            )

    def test_unknown_matter(self, db_session):
        with pytest.raises(NotFound):
            assignments.current_assignee(db_session, uuid.uuid4(), "associate")

from datetime import datetime, timezone

from decisionlog import models
from decisionlog.schemas.dataset import ExportMetadata
from decisionlog.services.exports_aggregator import (
    aggregate_export_dataset,
    resolve_target_decision_ids,
)


def _metadata(project_id: str) -> ExportMetadata:
    return ExportMetadata(
        project_id=project_id,
        export_id="e1",
        export_timestamp=datetime.now(timezone.utc),
        export_version="1.0",
    )


def test_project_scope_skips_deleted_decisions(db_session, seeded):
    ids = resolve_target_decision_ids(db_session, project_id=seeded.project_id, scope="project")
    assert ids == [seeded.d1_id, seeded.d2_id]


def test_decision_scope_intersects_with_project(db_session, seeded):
    ids = resolve_target_decision_ids(
        db_session,
        project_id=seeded.project_id,
        scope="decision",
        decision_ids=[seeded.d2_id, seeded.d3_id, "not-a-decision"],
    )
    assert ids == [seeded.d2_id]

    assert (
        resolve_target_decision_ids(
            db_session, project_id=seeded.project_id, scope="decision", decision_ids=[]
        )
        == []
    )


def test_dataset_is_closed_over_fetched_decisions(db_session, seeded):
    dataset = aggregate_export_dataset(
        db_session,
        decision_ids=[seeded.d1_id, seeded.d2_id, seeded.d3_id],
        include_attachments=True,
        metadata=_metadata(seeded.project_id),
    )

    decision_ids = {d.id for d in dataset.decisions}
    assert decision_ids == {seeded.d1_id, seeded.d2_id}
    for rows in (dataset.options, dataset.comments, dataset.approvals, dataset.attachments):
        assert {r.decision_id for r in rows} <= decision_ids

    assert [o.title for o in dataset.options] == ["Oak", "Quartz"]
    assert [a.filename for a in dataset.attachments] == [
        "a-sample.jpg",
        "b-plan.pdf",
        "c-quote.pdf",
    ]


def test_names_are_resolved_and_missing_profiles_are_none(db_session, seeded):
    db_session.add(
        models.DecisionComment(decision_id=seeded.d2_id, user_id=None, text="anonymous")
    )
    db_session.commit()

    dataset = aggregate_export_dataset(
        db_session,
        decision_ids=[seeded.d1_id, seeded.d2_id],
        include_attachments=False,
        metadata=_metadata(seeded.project_id),
    )

    by_text = {c.text: c for c in dataset.comments}
    assert by_text["Quartz please"].author_name == "Rob Client"
    assert by_text["anonymous"].author_name is None
    assert dataset.approvals[0].approver_name == "Rob Client"
    assert dataset.attachments == []


def test_empty_decision_ids_give_empty_dataset(db_session, seeded):
    dataset = aggregate_export_dataset(
        db_session,
        decision_ids=[],
        include_attachments=True,
        metadata=_metadata(seeded.project_id),
    )
    assert dataset.decisions == []
    assert dataset.metadata.export_id == "e1"

"""Tests for the opencopy CLI commands."""

from __future__ import annotations

from unittest.mock import patch

import httpx
from click.testing import CliRunner
from sqlmodel import select

from opencopy.cli import main
from opencopy.content.types import AutoPublishMode, ContentStatus
from opencopy.errors import StoreUnavailableError
from opencopy.publishing.factory import PublisherFactory
from opencopy.publishing.webhook import WebhookPublisher
from opencopy.queue.tasks import PUBLISH_ARTICLE, TaskQueue
from opencopy.storage.models import QueuedTask, ScheduledContent
from tests.conftest import NOW, make_item, make_project, make_webhook

AT_NOW = ["--now", NOW.isoformat()]


def _invoke(settings, args):
    runner = CliRunner()
    with patch("opencopy.config.get_settings", return_value=settings):
        return runner.invoke(main, args)


# ---------------------------------------------------------------------------
# generate-scan
# ---------------------------------------------------------------------------


class TestGenerateScan:
    def test_dispatches_due_items(self, session, settings) -> None:
        project = make_project(session)
        for kw in ("alpha", "beta", "gamma"):
            make_item(session, project, kw)

        result = _invoke(settings, ["generate-scan", *AT_NOW])

        assert result.exit_code == 0, result.output
        assert "Found 3 item(s) ready to generate." in result.output
        assert "Spreading jobs over 60 minutes" in result.output
        assert "Dispatched: gamma (starts in 60 min)" in result.output
        assert "Summary: 3 dispatched, 0 skipped." in result.output
        assert len(TaskQueue(session).pending()) == 3

    def test_dry_run(self, session, settings) -> None:
        project = make_project(session)
        item = make_item(session, project, "alpha")
        make_item(session, project, "beta")

        result = _invoke(settings, ["generate-scan", "--dry-run", *AT_NOW])

        assert result.exit_code == 0, result.output
        assert "[DRY RUN] Would dispatch: alpha" in result.output
        assert "(delay: 60 min)" in result.output
        assert "[DRY RUN] Summary: 2 dispatched, 0 skipped." in result.output
        assert "This was a dry run. No jobs were actually dispatched." in result.output
        session.expire_all()
        assert session.get(ScheduledContent, item.id).status is ContentStatus.SCHEDULED
        assert TaskQueue(session).pending() == []

    def test_reports_skipped_items(self, session, settings) -> None:
        project = make_project(session, name="No Provider", with_provider=False)
        make_item(session, project, "orphan")

        result = _invoke(settings, ["generate-scan", "--spread", "0", *AT_NOW])

        assert result.exit_code == 0, result.output
        assert "Skipping 'orphan'" in result.output
        assert "Summary: 0 dispatched, 1 skipped." in result.output

    def test_nothing_to_do(self, session, settings) -> None:
        result = _invoke(settings, ["generate-scan", *AT_NOW])

        assert result.exit_code == 0, result.output
        assert "No content ready to process." in result.output

    def test_store_unavailable_exits_nonzero(self, session, settings) -> None:
        with patch(
            "opencopy.scheduling.dispatcher.run_generation_scan",
            side_effect=StoreUnavailableError("database is locked"),
        ):
            result = _invoke(settings, ["generate-scan", *AT_NOW])

        assert result.exit_code == 1
        assert "Content store unavailable" in result.output

    def test_bad_now_value(self, session, settings) -> None:
        result = _invoke(settings, ["generate-scan", "--now", "not-a-date"])

        assert result.exit_code == 2
        assert "Cannot parse" in result.output


# ---------------------------------------------------------------------------
# publish-scan and work
# ---------------------------------------------------------------------------


class TestPublishFlow:
    def test_publish_scan_queues_due_articles(self, session, settings) -> None:
        project = make_project(session, auto_publish=AutoPublishMode.SCHEDULED)
        make_item(session, project, "espresso", status=ContentStatus.APPROVED, with_article=True)

        result = _invoke(settings, ["publish-scan", *AT_NOW])

        assert result.exit_code == 0, result.output
        assert "Found 1 item(s) ready to publish." in result.output
        assert "Dispatching publish job for article: Espresso" in result.output
        assert len(TaskQueue(session).pending(PUBLISH_ARTICLE)) == 1

    def test_publish_scan_reports_already_queued(self, session, settings) -> None:
        project = make_project(session, auto_publish=AutoPublishMode.SCHEDULED)
        make_item(session, project, "espresso", status=ContentStatus.APPROVED, with_article=True)

        _invoke(settings, ["publish-scan", *AT_NOW])
        result = _invoke(settings, ["publish-scan", *AT_NOW])

        assert result.exit_code == 0, result.output
        assert "Already queued: Espresso" in result.output
        assert "Done. 0 dispatched, 1 already queued." in result.output
        assert len(TaskQueue(session).pending(PUBLISH_ARTICLE)) == 1

    def test_publish_scan_nothing_due(self, session, settings) -> None:
        result = _invoke(settings, ["publish-scan", *AT_NOW])

        assert "No content ready to publish." in result.output

    def test_work_once(self, session, settings) -> None:
        project = make_project(session, auto_publish=AutoPublishMode.SCHEDULED)
        item = make_item(session, project, "espresso", status=ContentStatus.APPROVED, with_article=True)
        TaskQueue(session).enqueue(PUBLISH_ARTICLE, {"article_id": item.article_id}, now=NOW)

        result = _invoke(settings, ["work", "--once", *AT_NOW])

        assert result.exit_code == 0, result.output
        assert "Processed 1 task(s): 1 completed" in result.output
        session.expire_all()
        assert session.exec(select(QueuedTask)).one().status == "done"


# ---------------------------------------------------------------------------
# keyword, plan, integration
# ---------------------------------------------------------------------------


class TestPlanning:
    def test_keyword_add(self, session, settings) -> None:
        project = make_project(session)

        result = _invoke(settings, ["keyword", "add", str(project.id), "How to dial in espresso"])

        assert result.exit_code == 0, result.output
        assert "how_to" in result.output
        item = session.exec(select(ScheduledContent)).one()
        assert item.status is ContentStatus.BACKLOG

    def test_keyword_add_unknown_project(self, session, settings) -> None:
        result = _invoke(settings, ["keyword", "add", "404", "espresso"])

        assert result.exit_code == 1
        assert "project 404 not found" in result.output

    def test_schedule_and_invalid_approve(self, session, settings) -> None:
        project = make_project(session)
        item = make_item(session, project, "espresso", status=ContentStatus.BACKLOG, on=None)

        scheduled = _invoke(settings, ["plan", "schedule", str(item.id), "2025-07-01", "--time", "09:30"])
        approved = _invoke(settings, ["plan", "approve", str(item.id)])

        assert scheduled.exit_code == 0, scheduled.output
        assert "is now Scheduled" in scheduled.output
        assert approved.exit_code == 1
        assert "Cannot move content from 'scheduled' to 'approved'" in approved.output

    def test_schedule_rejects_bad_date(self, session, settings) -> None:
        project = make_project(session)
        item = make_item(session, project, "espresso", status=ContentStatus.BACKLOG, on=None)

        result = _invoke(settings, ["plan", "schedule", str(item.id), "not-a-date"])

        assert result.exit_code == 2
        assert "Cannot parse 'not-a-date' as a date" in result.output
        assert isinstance(result.exception, SystemExit)

    def test_schedule_rejects_bad_time(self, session, settings) -> None:
        project = make_project(session)
        item = make_item(session, project, "espresso", status=ContentStatus.BACKLOG, on=None)

        result = _invoke(
            settings, ["plan", "schedule", str(item.id), "2025-07-01", "--time", "25:99"]
        )

        assert result.exit_code == 2
        assert "Expected HH:MM, got '25:99'" in result.output
        session.expire_all()
        assert session.get(ScheduledContent, item.id).status is ContentStatus.BACKLOG

    def test_approve_help_names_generation_worker(self, settings) -> None:
        result = _invoke(settings, ["plan", "approve", "--help"])

        assert result.exit_code == 0
        assert "external generation worker" in " ".join(result.output.split())

    def test_plan_list(self, session, settings) -> None:
        project = make_project(session)
        make_item(session, project, "espresso")

        result = _invoke(settings, ["plan", "list"])

        assert result.exit_code == 0, result.output
        assert "espresso" in result.output

    def test_integration_test(self, session, settings) -> None:
        project = make_project(session)
        hook = make_webhook(session, project)
        factory = PublisherFactory(
            {
                "webhook": lambda: WebhookPublisher(
                    transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"ok": True}))
                )
            }
        )

        with patch.object(PublisherFactory, "from_settings", return_value=factory):
            result = _invoke(settings, ["integration", "test", str(hook.id)])

        assert result.exit_code == 0, result.output
        assert "Connection successful!" in result.output


class TestMisc:
    def test_version(self) -> None:
        result = CliRunner().invoke(main, ["--version"])
        assert "0.1.0" in result.output

    def test_run_scheduler_single_tick(self, session, settings) -> None:
        result = _invoke(settings, ["run-scheduler", "--ticks", "1"])

        assert result.exit_code == 0, result.output
        assert "Scheduler started." in result.output
        assert "Publish scan: 0 dispatched." in result.output

    def test_init_db(self, settings) -> None:
        result = _invoke(settings, ["init-db"])

        assert result.exit_code == 0, result.output
        assert settings.db_path.exists()

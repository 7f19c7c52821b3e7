"""End-to-end runs through the composed pipeline with a scripted model."""
import pytest

from conftest import FakeAnthropic, scripted_responder
from insight_pipeline import pipeline as cli
from insight_pipeline.app import build_pipeline
from insight_pipeline.client import APIClient
from insight_pipeline.config import Settings
from insight_pipeline.models import FeedbackItem, InputStatus, Severity, Topic
from insight_pipeline.provider import OP_ANALYSIS, OP_SUMMARY, OP_TOPIC


@pytest.fixture
def settings():
    return Settings(anthropic_api_key="test", worker_count=1, job_retry_delay=0)


@pytest.fixture
def built(settings, store, sleep):
    fake = FakeAnthropic(scripted_responder)
    api = APIClient(client=fake, sleep=sleep)
    return build_pipeline(settings, store=store, api=api, sleep=sleep), fake


class TestLibraryWifiScenario:
    """New WiFi feedback joins the existing WiFi topic and shows up in its summary."""

    @pytest.mark.asyncio
    async def test_feedback_joins_existing_topic(self, built, store):
        pipeline, fake = built
        topic = await store.add_topic(Topic(name="Library WiFi Connectivity"))
        item = await store.add_item(FeedbackItem(body="The library wifi keeps dropping during lectures"))

        assert await pipeline.scheduler.on_item_created(item.id) is not None
        pipeline.scheduler.start()
        await pipeline.queue.join()
        await pipeline.scheduler.stop()

        stored = store.items[item.id]
        assert stored.status == InputStatus.ANALYZED_CLEAN
        assert stored.topic_id == topic.id
        assert stored.severity == Severity.HIGH
        assert len(store.topics) == 1
        assert [r.operation for r in store.usage] == [OP_ANALYSIS, OP_TOPIC]
        assert await pipeline.ledger.total_cost(store.usage[0].created_at, store.usage[-1].created_at) == \
            pytest.approx(0.012)

        await pipeline.jobs.summarize_topic(topic.id)
        await pipeline.jobs.summarize_topic(topic.id)

        assert store.topics[topic.id].summary.narrative_sections["headline_insight"] == \
            "Library WiFi outages block coursework"
        # Second run over an unchanged collection is served from cache
        assert [r.operation for r in store.usage].count(OP_SUMMARY) == 1
        assert len(fake.calls) == 3

    @pytest.mark.asyncio
    async def test_sweep_catches_items_whose_trigger_failed(self, built, store):
        pipeline, _ = built
        item = await store.add_item(FeedbackItem(body="Parking near the gym is full by 8am"))

        assert await pipeline.jobs.process_pending() == 1
        assert store.items[item.id].status == InputStatus.ANALYZED_CLEAN
        assert store.topics[store.items[item.id].topic_id].name == "Student Parking Shortage"

    @pytest.mark.asyncio
    async def test_recurring_jobs_follow_settings(self, settings, store, sleep):
        settings = settings.model_copy(update={"summarize_topics_daily": False})
        api = APIClient(client=FakeAnthropic(scripted_responder), sleep=sleep)
        pipeline = build_pipeline(settings, store=store, api=api, sleep=sleep)

        await pipeline.schedule_recurring()

        assert sorted(pipeline.queue.recurring) == ["generate-inquiry-summaries", "process-pending-inputs"]


class TestCommandLine:

    @pytest.fixture
    def csv_file(self, tmp_path):
        path = tmp_path / "feedback.csv"
        path.write_text(
            "id,body,created_at,inquiry_id\n"
            "f1,The library WiFi keeps dropping,2026-03-01T10:00:00Z,\n"
            "f2,WiFi in the library is slow,2026-03-02T10:00:00Z,\n"
            "f3,More quiet study rooms please,2026-03-03T10:00:00Z,q-study\n"
        )
        return path

    @pytest.mark.asyncio
    async def test_run_pipeline_writes_reports(self, built, csv_file, settings, tmp_path, monkeypatch, capsys):
        pipeline, _ = built
        monkeypatch.setattr(cli, "build_pipeline", lambda _settings: pipeline)
        report_dir = tmp_path / "reports"

        await cli.run_pipeline(csv_file, settings, output_dir=report_dir)

        out = capsys.readouterr().out
        assert "✓ Analyzed 3/3 items" in out
        assert "✓ 1 topic summaries, 1 inquiry summaries" in out
        assert sorted(p.name for p in report_dir.iterdir()) == [
            "inquiry_q-study.md",
            "topic_library-wifi-connectivity-issues.md",
        ]
        report = (report_dir / "inquiry_q-study.md").read_text()
        assert report.startswith("# Inquiry: q-study")

    @pytest.mark.asyncio
    async def test_missing_csv(self, settings, tmp_path, capsys):
        await cli.run_pipeline(tmp_path / "missing.csv", settings)
        assert "not found" in capsys.readouterr().out

    def test_main_parses_arguments(self, monkeypatch, tmp_path):
        calls = []

        async def fake_run(csv_file, settings, start_date, end_date, output_dir):
            calls.append((csv_file, start_date, end_date, output_dir))

        monkeypatch.setattr(cli, "run_pipeline", fake_run)
        monkeypatch.setattr(cli, "configure_logging", lambda level, fmt: None)
        monkeypatch.setattr(cli, "load_settings", lambda: Settings(anthropic_api_key="test"))

        cli.main(["run", "data.csv", "--start-date", "2026-03-01", "--output-dir", str(tmp_path)])

        csv_file, start_date, end_date, output_dir = calls[0]
        assert csv_file.name == "data.csv"
        assert start_date.isoformat() == "2026-03-01"
        assert end_date is None
        assert output_dir == tmp_path

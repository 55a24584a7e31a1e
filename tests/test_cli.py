"""
Tests for the command-line interface.
"""
import io

from topic_coverage.core.container import ServiceRegistry
from topic_coverage.core.interfaces import (
    Cache, CompetitorDiscovery, ContentScraper, EmbeddingProvider
)
from topic_coverage.core.models import (
    AnalysisResult, CategoryScore, ExtractedEntity, Heading, RadarPoint
)
from topic_coverage.infrastructure.cache import MemoryCache
from topic_coverage.infrastructure.config import load_configuration
from topic_coverage.presentation.cli import TopicCoverageCLI, category_table, format_report
from tests.fakes import FakeDiscovery, FakeScraper, KeywordEmbeddingProvider, make_document

TARGET_URL = "https://target.com/seo-guide"
COMPETITOR_URL = "https://rival.com/content"

DOCUMENTS = {
    TARGET_URL: make_document(
        url=TARGET_URL,
        title="SEO Guide for Small Teams",
        body=("Our seo guide explains how search engines crawl and index every page.\n\n"
              "Marketing teams plan each campaign around a clear and measurable goal."),
        headings=[Heading(1, "SEO Guide"), Heading(2, "Crawling")],
    ),
    COMPETITOR_URL: make_document(
        url=COMPETITOR_URL,
        title="Content Calendars",
        body="Content strategy matters: a content calendar keeps every content team publishing on time.",
    ),
    "https://acmecorp.com": make_document(
        url="https://acmecorp.com",
        title="Acme Corp - Digital Marketing Agency",
        body="We help brands grow.",
    ),
}


class RecordingCache(MemoryCache):
    def __init__(self):
        super().__init__()
        self.events = []

    def start(self):
        self.events.append('start')

    def stop(self):
        self.events.append('stop')


def make_cli(register_fakes=True):
    registry = ServiceRegistry(environ={})
    registry.configure(load_configuration(environ={}))
    if register_fakes:
        registry.container.register_instance(EmbeddingProvider, KeywordEmbeddingProvider())
        registry.container.register_instance(ContentScraper, FakeScraper(DOCUMENTS))
    output = io.StringIO()
    return TopicCoverageCLI(registry=registry, config=registry.config, output=output), output


class TestTopicCoverageCLI:
    """Test TopicCoverageCLI class."""

    def test_no_command_prints_help(self):
        cli, output = make_cli()
        assert cli.run([]) == 1
        assert "usage: topic-coverage" in output.getvalue()

    def test_analyze(self):
        cli, output = make_cli()
        status = cli.run([
            'analyze', TARGET_URL, '--competitor', COMPETITOR_URL,
            '--query', 'seo ranking tips', '--query', 'marketing campaign ideas',
            '--query', 'content calendar', '--no-generate',
        ])

        report = output.getvalue()
        assert status == 0
        assert "TOPIC COVERAGE ANALYSIS" in report
        assert "Overall score: 67/100" in report
        assert "Queries analyzed: 3" in report
        assert "[high] Content" in report
        assert COMPETITOR_URL in report

    def test_analyze_invalid_url(self):
        cli, output = make_cli()
        assert cli.run(['analyze', 'not-a-url', '--no-discover']) == 1
        assert "Error: Invalid URL format: not-a-url" in output.getvalue()

    def test_analyze_scrape_failure(self):
        cli, output = make_cli()
        assert cli.run(['analyze', 'https://unknown.com', '--no-discover']) == 1
        assert "Error: Failed to scrape target URL" in output.getvalue()

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        cli, output = make_cli(register_fakes=False)

        assert cli.run(['analyze', TARGET_URL]) == 1
        assert "OPENAI_API_KEY" in output.getvalue()

    def test_topic(self):
        cli, output = make_cli()
        assert cli.run(['topic', 'https://acmecorp.com']) == 0

        text = output.getvalue()
        assert "Type: Organization" in text
        assert "Source: title" in text

    def test_scrape(self):
        cli, output = make_cli()
        assert cli.run(['scrape', TARGET_URL]) == 0

        text = output.getvalue()
        assert "Title: SEO Guide for Small Teams" in text
        assert "Meta description: -" in text
        assert "h1 SEO Guide" in text
        assert "h2 Crawling" in text

    def test_scrape_failure(self):
        cli, output = make_cli()
        assert cli.run(['scrape', 'https://unknown.com']) == 1
        assert output.getvalue().startswith("Error:")

    def test_threshold_override(self):
        cli, _ = make_cli()
        args = cli.create_parser().parse_args(['analyze', TARGET_URL, '--threshold', '0.85'])
        cli._configure(args)
        assert cli.config['analysis']['similarity_threshold'] == 0.85

    def test_cache_cleanup_runs_around_command(self):
        cli, _ = make_cli()
        cache = RecordingCache()
        cli.registry.container.register_instance(Cache, cache)

        assert cli.run(['scrape', TARGET_URL]) == 0
        assert cache.events == ['start', 'stop']

    def test_cache_stopped_on_failure(self):
        cli, _ = make_cli()
        cache = RecordingCache()
        cli.registry.container.register_instance(Cache, cache)

        assert cli.run(['analyze', 'not-a-url', '--no-discover']) == 1
        assert cache.events == ['start', 'stop']

    def test_discovery_result_count_from_config(self):
        cli, output = make_cli()
        cli.config['discovery']['result_count'] = 1
        discovery = FakeDiscovery([COMPETITOR_URL, "https://acmecorp.com"])
        cli.registry.container.register_instance(CompetitorDiscovery, discovery)

        status = cli.run(['analyze', TARGET_URL, '--query', 'content calendar', '--no-generate'])

        report = output.getvalue()
        assert status == 0
        assert discovery.queries == ["SEO Guide for Small Teams"]
        assert COMPETITOR_URL in report
        assert "acmecorp.com" not in report


class TestReportFormatting:
    """Test report helpers."""

    def result(self):
        return AnalysisResult(
            analysis_id="analysis_1_abc",
            target_url=TARGET_URL,
            target_title="SEO Guide",
            target_score=55,
            competitor_results=[],
            radar_data=[RadarPoint("SEO", 80, 60), RadarPoint("Content", 30, 70)],
            coverage_gaps=[],
            recommendations=["Publish more guides."],
            queries=["seo tips", "content plan"],
            target_category_scores=[CategoryScore("SEO", 80, 1, 1), CategoryScore("Content", 30, 0, 1)],
            processing_time=1.3,
        )

    def test_category_table(self):
        table = category_table(self.result())
        assert list(table.columns) == ['Category', 'Score', 'Competitor Avg', 'Matched']
        assert table['Competitor Avg'].tolist() == [60, 70]
        assert table['Matched'].tolist() == ["1/1", "0/1"]

    def test_format_report(self):
        report = format_report(self.result())
        assert "Overall score: 55/100" in report
        assert "Recommendations:" in report
        assert "Publish more guides." in report
        assert "Coverage gaps:" not in report
        assert report.endswith("Processing time: 1.3s")

    def test_entities_grouped_by_type(self):
        result = self.result()
        result.entities = [
            ExtractedEntity("SEO audits", "service", 0.9),
            ExtractedEntity("Acme", "organization", 0.8),
            ExtractedEntity("Link building", "service", 0.8),
        ]
        report = format_report(result)
        assert "  service: SEO audits, Link building" in report
        assert "  organization: Acme" in report

"""
Command-line interface for the topic coverage analyzer.
"""
import argparse
import sys
from typing import Callable, Dict, List, Optional, TextIO

import pandas as pd

from ..application.pipeline import AnalysisService
from ..core.container import ServiceRegistry, service_registry
from ..core.errors import AnalysisError, ProviderError
from ..core.interfaces import Cache, ContentScraper, Logger
from ..core.models import AnalysisRequest, AnalysisResult, ContentElements
from ..entities import EntityExtractor
from ..infrastructure.config import create_default_config_provider, load_configuration
from ..topic import TopicDetector, extract_primary_topic_safely


def category_table(result: AnalysisResult) -> pd.DataFrame:
    """Target and competitor-average score per category."""
    averages = {point.category: point.competitor_avg for point in result.radar_data}
    rows = [
        {
            'Category': score.category,
            'Score': score.score,
            'Competitor Avg': averages.get(score.category, 0),
            'Matched': f"{score.matched_queries}/{score.total_queries}",
        }
        for score in result.target_category_scores
    ]
    return pd.DataFrame(rows, columns=['Category', 'Score', 'Competitor Avg', 'Matched'])


def format_report(result: AnalysisResult) -> str:
    """Plain-text analysis report."""
    lines = [
        "=" * 60,
        "TOPIC COVERAGE ANALYSIS",
        "=" * 60,
        f"URL: {result.target_url}",
        f"Title: {result.target_title}",
    ]
    if result.primary_topic:
        topic = result.primary_topic
        lines.append(f"Primary topic: {topic.entity} ({topic.entity_type.value}, "
                     f"confidence {topic.confidence:.2f})")
    lines.append(f"Overall score: {result.target_score}/100")
    lines.append(f"Queries analyzed: {len(result.queries)}")
    lines.append("")

    if result.entities:
        lines.append("Entities:")
        for entity_type, names in EntityExtractor.summarize(result.entities).items():
            lines.append(f"  {entity_type}: {', '.join(names)}")
        lines.append("")

    table = category_table(result)
    if not table.empty:
        lines.append(table.to_string(index=False))
        lines.append("")

    if result.competitor_results:
        lines.append("Competitors:")
        for competitor in result.competitor_results:
            lines.append(f"  {competitor.overall_score:>3}  {competitor.url}")
        lines.append("")

    if result.coverage_gaps:
        lines.append("Coverage gaps:")
        for gap in result.coverage_gaps:
            lines.append(f"  [{gap.priority.value}] {gap.category}: {gap.recommendation}")
            if gap.missing_queries:
                lines.append(f"         missing: {', '.join(gap.missing_queries)}")
        lines.append("")

    if result.recommendations:
        lines.append("Recommendations:")
        lines.extend(f"  • {recommendation}" for recommendation in result.recommendations)
        lines.append("")

    if result.optimization_recommendations:
        lines.append("Optimization recommendations:")
        for item in result.optimization_recommendations:
            lines.append(f"  [{item.priority.value}] {item.category}: {item.recommendation}")

    lines.append(f"Processing time: {result.processing_time:.1f}s")
    return "\n".join(lines)


class CLICommand:
    """Base class for CLI commands."""

    def __init__(self, logger: Logger, output: Optional[TextIO] = None):
        self.logger = logger
        self.output = output or sys.stdout

    def write(self, text: str = "") -> None:
        self.output.write(text + "\n")

    def execute(self, args: argparse.Namespace) -> int:
        """Execute the command and return the exit status."""
        raise NotImplementedError


class AnalyzeCommand(CLICommand):
    """Full coverage analysis of a page against its competitors."""

    def __init__(self, service: AnalysisService, logger: Logger, output: Optional[TextIO] = None,
                 result_count: int = 5):
        super().__init__(logger, output)
        self.service = service
        self.result_count = result_count

    def execute(self, args: argparse.Namespace) -> int:
        request = AnalysisRequest(
            target_url=args.url,
            competitor_urls=args.competitor or [],
            queries=args.query or [],
            include_top_results=not args.no_discover,
            generate_queries=not args.no_generate,
            result_count=self.result_count,
        )
        try:
            result = self.service.run(request)
        except AnalysisError as e:
            self.logger.error(f"Analysis failed ({e.code}): {e}")
            self.write(f"Error: {e}")
            return 1

        self.write(format_report(result))
        return 0


class TopicCommand(CLICommand):
    """Print the detected primary topic of a page."""

    def __init__(self, scraper: ContentScraper, detector: TopicDetector, logger: Logger,
                 output: Optional[TextIO] = None):
        super().__init__(logger, output)
        self.scraper = scraper
        self.detector = detector

    def execute(self, args: argparse.Namespace) -> int:
        try:
            document = self.scraper.scrape(args.url)
        except ProviderError as e:
            self.write(f"Error: {e}")
            return 1

        topic = extract_primary_topic_safely(ContentElements.from_document(document), self.detector)
        self.write(f"Entity: {topic.entity}")
        self.write(f"Type: {topic.entity_type.value}")
        self.write(f"Confidence: {topic.confidence:.2f}")
        self.write(f"Source: {topic.source.value}")
        if topic.sub_entities:
            self.write(f"Sub-entities: {', '.join(topic.sub_entities)}")
        if topic.combined_topic:
            self.write(f"Combined topic: {topic.combined_topic}")
        return 0


class ScrapeCommand(CLICommand):
    """Print what the scraper extracts from a page."""

    def __init__(self, scraper: ContentScraper, logger: Logger, output: Optional[TextIO] = None):
        super().__init__(logger, output)
        self.scraper = scraper

    def execute(self, args: argparse.Namespace) -> int:
        try:
            document = self.scraper.scrape(args.url)
        except ProviderError as e:
            self.write(f"Error: {e}")
            return 1

        self.write(f"Title: {document.title}")
        self.write(f"Meta description: {document.meta_description or '-'}")
        self.write(f"Word count: {document.word_count}")
        if document.headings:
            self.write("Headings:")
            for heading in document.headings:
                self.write(f"  {'  ' * (heading.level - 1)}h{heading.level} {heading.text}")
        return 0


class TopicCoverageCLI:
    """Main CLI application."""

    def __init__(self, registry: Optional[ServiceRegistry] = None,
                 config: Optional[Dict] = None, output: Optional[TextIO] = None):
        self.registry = registry or service_registry
        self.config = config
        self.output = output or sys.stdout
        self.commands: Dict[str, Callable[[], CLICommand]] = {
            'analyze': self._analyze_command,
            'topic': self._topic_command,
            'scrape': self._scrape_command,
        }

    def _analyze_command(self) -> CLICommand:
        result_count = self.registry.config.get('discovery', {}).get('result_count', 5)
        return AnalyzeCommand(self.registry.get_service(AnalysisService),
                              self.registry.get_service(Logger), self.output, result_count)

    def _topic_command(self) -> CLICommand:
        provider_name = self.registry.config.get('llm', {}).get('topic_provider', 'openai')
        detector = TopicDetector(self.registry.completion_provider(provider_name))
        return TopicCommand(self.registry.get_service(ContentScraper), detector,
                            self.registry.get_service(Logger), self.output)

    def _scrape_command(self) -> CLICommand:
        return ScrapeCommand(self.registry.get_service(ContentScraper),
                             self.registry.get_service(Logger), self.output)

    def create_parser(self) -> argparse.ArgumentParser:
        """Create the argument parser."""
        parser = argparse.ArgumentParser(
            prog='topic-coverage',
            description="Topic coverage analysis of a web page against its competitors",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  topic-coverage analyze https://example.com/page --competitor https://other.com/page
  topic-coverage analyze https://example.com/page --query "seo audit" --no-discover
  topic-coverage topic https://example.com/page
  topic-coverage scrape https://example.com/page
            """
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        analyze_parser = subparsers.add_parser('analyze', help='Run a full coverage analysis')
        analyze_parser.add_argument('url', help='Target page URL')
        analyze_parser.add_argument('--competitor', action='append', metavar='URL',
                                    help='Competitor page URL (repeatable)')
        analyze_parser.add_argument('--query', action='append', metavar='Q',
                                    help='Search query to score (repeatable)')
        analyze_parser.add_argument('--threshold', type=float,
                                    help='Similarity threshold for a matched query')
        analyze_parser.add_argument('--no-generate', action='store_true',
                                    help='Do not generate queries with an LLM')
        analyze_parser.add_argument('--no-discover', action='store_true',
                                    help='Do not discover competitors through search')

        topic_parser = subparsers.add_parser('topic', help='Detect the primary topic of a page')
        topic_parser.add_argument('url', help='Page URL')

        scrape_parser = subparsers.add_parser('scrape', help='Scrape a page and show its structure')
        scrape_parser.add_argument('url', help='Page URL')

        return parser

    def _configure(self, args: argparse.Namespace) -> None:
        config = self.config or load_configuration(create_default_config_provider())
        threshold = getattr(args, 'threshold', None)
        if threshold is not None:
            config.setdefault('analysis', {})['similarity_threshold'] = threshold
        self.registry.configure(config)

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Run the CLI application and return the exit status."""
        parser = self.create_parser()
        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help(self.output)
            return 1

        try:
            self._configure(args)
            command = self.commands[args.command]()
            cache = self.registry.get_service(Cache)
            cache.start()
            try:
                return command.execute(args)
            finally:
                cache.stop()
        except KeyboardInterrupt:
            self.output.write("\nOperation cancelled by user\n")
            return 1
        except ValueError as e:
            # Missing API keys and bad configuration surface here
            self.output.write(f"Error: {e}\n")
            return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    return TopicCoverageCLI().run(argv)


if __name__ == "__main__":
    sys.exit(main())

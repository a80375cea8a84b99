"""Article pipeline entry point.

Usage:
    python run_pipeline.py <source_file> [TICKER]

Loads config.yaml, initialises the AI, market and news providers, runs
ArticlePipeline on the source text and writes the article plus its report
to the output directory.
"""

import sys

from dotenv import load_dotenv

load_dotenv()  # must precede newsdesk imports so env vars are available at module load

from newsdesk.core.cache import SQLiteCache  # noqa: E402
from newsdesk.core.config import AIProviderConfig, load_config, section  # noqa: E402
from newsdesk.core.logger import logger  # noqa: E402
from newsdesk.pipeline.engine import ArticlePipeline  # noqa: E402
from newsdesk.pipeline.price_action import EXCHANGE_TIMEZONE  # noqa: E402
from newsdesk.providers.llm import AIProvider  # noqa: E402
from newsdesk.providers.market import YFinanceProvider  # noqa: E402
from newsdesk.providers.news import GoogleNewsProvider  # noqa: E402


def main(argv=None) -> int:
    """Run the pipeline. Returns 0 on success, 1 on failure."""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print("Usage: python run_pipeline.py <source_file> [TICKER]", file=sys.stderr)
        return 1
    source_path = args[0]
    ticker = args[1] if len(args) > 1 else None

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        logger.error(f"run_pipeline: failed to load config: {exc}")
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    try:
        with open(source_path, encoding="utf-8") as f:
            source_text = f.read()
    except OSError as exc:
        logger.error(f"run_pipeline: cannot read {source_path}: {exc}")
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    output_dir = config.get("output_dir", "output")
    news_cfg = section(config, "news")

    try:
        pipeline = ArticlePipeline(
            config=config,
            llm=AIProvider(AIProviderConfig.from_settings(section(config, "ai"))),
            market=YFinanceProvider(
                cache_dir=output_dir,
                timezone=section(config, "market").get("timezone", EXCHANGE_TIMEZONE),
            ),
            news=GoogleNewsProvider(
                cache_instance=SQLiteCache(db_path=f"{output_dir}/.cache.db", max_age_hours=6),
                lookback_days=news_cfg.get("lookback_days", 7),
                excluded_sources=news_cfg.get("excluded_sources"),
            ),
            output_dir=output_dir,
        )
        article = pipeline.run(source_text, ticker=ticker)
        html_path, report_path = pipeline.write(article)
    except Exception as exc:
        logger.error(f"run_pipeline: ArticlePipeline raised: {exc}", exc_info=True)
        print(f"ERROR: pipeline failed: {exc}", file=sys.stderr)
        return 1

    for warning in article.quote_report.warnings + article.number_report.warnings:
        print(f"WARNING: {warning}")
    print(f"SUCCESS: article written to {html_path} (report: {report_path})")
    logger.info(f"run_pipeline: completed, {html_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

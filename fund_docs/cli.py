"""
Command line entry point for fund-docs.

Subcommands:
    diff FROM.json TO.json                 List changes between two template versions
    compose TEMPLATE.json CONTEXT.json -o OUT.pdf [--preview] [--page-map MAP.json]
    extract COMBINED.pdf -p 3 -p 4 -o OUT.pdf
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from fund_docs.core.exceptions import FundDocsError
from fund_docs.core.logging import LOG_STYLES, setup_logging
from fund_docs.pdf.generator import generate_document_pdf
from fund_docs.pdf.splitter import extract_pages
from fund_docs.templating.context import RenderContext
from fund_docs.templating.diff_engine import TemplateDiffEngine
from fund_docs.templating.sections import TemplateContent

logger = logging.getLogger(__name__)


def _read_json(path: str) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def load_template_file(path: str) -> dict[str, Any]:
    """
    Read a template file as a record-shaped dict.

    Accepts either a stored record ({doc_type, version, content}) or bare
    content ({doc_type, sections, appendix}); bare content is versioned by
    its file name.
    """
    data = _read_json(path)
    if "content" in data:
        return data
    return {
        "doc_type": data.get("doc_type", data.get("type")),
        "version": Path(path).stem,
        "content": data,
    }


def run_diff(args: argparse.Namespace) -> int:
    diff = TemplateDiffEngine().compare(load_template_file(args.from_file), load_template_file(args.to_file))

    if args.json:
        print(json.dumps(diff.to_dict(), ensure_ascii=False, indent=2))
        return 0

    print(f"{diff.from_version} -> {diff.to_version}")
    for change in diff.changes:
        if change.kind == "modified":
            print(f"  ~ {change.display_path}: {change.old_value} -> {change.new_value}")
        elif change.kind == "added":
            print(f"  + {change.display_path}: {change.new_value}")
        else:
            print(f"  - {change.display_path}: {change.old_value}")
    summary = diff.summary
    print(
        f"added {summary.get('added', 0)}, removed {summary.get('removed', 0)}, "
        f"modified {summary.get('modified', 0)}"
    )
    return 0


def run_compose(args: argparse.Namespace) -> int:
    record = load_template_file(args.template)
    content = TemplateContent.from_dict(record["content"], doc_type=record.get("doc_type"))
    context = RenderContext.from_dict(_read_json(args.context), preview=args.preview)

    composed = generate_document_pdf(content, context, title_page=args.title_page)
    Path(args.output).write_bytes(composed.pdf_bytes)
    logger.info(f"Wrote {args.output} ({composed.page_count} pages)")

    if args.page_map:
        with open(args.page_map, "w", encoding="utf-8") as f:
            json.dump(composed.page_map_dicts(), f, ensure_ascii=False, indent=2)
        logger.info(f"Wrote page map {args.page_map} ({len(composed.page_map)} entries)")
    return 0


def run_extract(args: argparse.Namespace) -> int:
    pdf_bytes = Path(args.pdf).read_bytes()
    Path(args.output).write_bytes(extract_pages(pdf_bytes, args.pages))
    logger.info(f"Wrote pages {args.pages} to {args.output}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fund-docs", description="Fund legal document composition")
    parser.add_argument("--log-level", help="Logging level (default: LOG_LEVEL or INFO)")
    parser.add_argument("--log-format", choices=LOG_STYLES, help="Log output style (default: LOG_FORMAT or text)")
    parser.add_argument("--log-file", help="Also log to this file under LOG_DIR (default: LOG_FILE)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    diff = subparsers.add_parser("diff", help="Compare two template versions")
    diff.add_argument("from_file", help="Older template JSON")
    diff.add_argument("to_file", help="Newer template JSON")
    diff.add_argument("--json", action="store_true", help="Print the diff as JSON")
    diff.set_defaults(handler=run_diff)

    compose = subparsers.add_parser("compose", help="Compose a PDF from a template and a context")
    compose.add_argument("template", help="Template JSON")
    compose.add_argument("context", help="Context JSON (fund, members, variables)")
    compose.add_argument("-o", "--output", required=True, help="Output PDF path")
    compose.add_argument("--preview", action="store_true", help="Mark substituted and missing values")
    compose.add_argument("--title-page", action="store_true", help="Start with a cover page")
    compose.add_argument("--page-map", help="Write the page map JSON here")
    compose.set_defaults(handler=run_compose)

    extract = subparsers.add_parser("extract", help="Copy pages out of a combined PDF")
    extract.add_argument("pdf", help="Combined PDF")
    extract.add_argument("-p", "--page", dest="pages", type=int, action="append", required=True,
                         help="1-based page number (repeatable)")
    extract.add_argument("-o", "--output", required=True, help="Output PDF path")
    extract.set_defaults(handler=run_extract)

    return parser


def main(argv=None):
    """Main entry point for the fund-docs command."""
    args = build_parser().parse_args(argv)

    try:
        setup_logging("fund_docs", level=args.log_level, log_format=args.log_format, log_file=args.log_file)
        code = args.handler(args)
    except FundDocsError as e:
        logger.error(str(e))
        sys.exit(1)
    except OSError as e:
        logger.error(f"I/O error: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        sys.exit(130)
    sys.exit(code)


if __name__ == "__main__":
    main()

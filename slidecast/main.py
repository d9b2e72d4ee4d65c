"""
Slidecast - Command line entry point
Builds one slideshow video from a pipeline context JSON file
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from slidecast.core.exceptions import SlidecastError
from slidecast.services.video_generation_service import VideoGenerationService

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, log_file: str = 'slidecast.log'):
    """Setup structured logging configuration"""
    log_level = logging.DEBUG if verbose else logging.INFO

    detailed_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(name)-20s | %(funcName)-15s:%(lineno)-4d | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    simple_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(message)s',
        datefmt='%H:%M:%S'
    )

    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(simple_formatter)

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(detailed_formatter)

    logging.basicConfig(
        level=log_level,
        handlers=[console_handler, file_handler],
        force=True
    )
    logging.getLogger('ffmpeg').setLevel(logging.WARNING)


def load_json_file(path_str: str, description: str) -> Dict[str, Any]:
    """
    Read a JSON object from a file.

    Raises:
        ValueError: If the file is missing or does not hold a JSON object
    """
    path = Path(path_str.strip()).resolve()
    if not path.is_file():
        raise ValueError(f"{description} file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except json.JSONDecodeError as e:
        raise ValueError(f"{description} file is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"{description} file must contain a JSON object")
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Slidecast - build a slideshow video from pipeline outputs")
    parser.add_argument("--context", required=True, help="Pipeline context JSON ({\"step_outputs\": ..., \"steps\": ...})")
    parser.add_argument("--config", help="Action configuration JSON (video_quality, transition_type, ...)")
    parser.add_argument("--output", help="Output video path (default: storage/pipeline/videos/<YYYY-MM>/)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        context = load_json_file(args.context, "Pipeline context")
        action_config = load_json_file(args.config, "Action configuration") if args.config else {}
    except ValueError as e:
        logger.error(f"❌ {e}")
        return 1

    service = VideoGenerationService()
    try:
        output = service.execute(context, action_config, output_path=args.output)
    except SlidecastError as e:
        logger.error(f"❌ Video generation failed: {e}")
        return 1

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
Command line entry point.

    weibo-saver listen
    weibo-saver process-file mail.eml
    weibo-saver process-file body.html --source rednote
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from .config import SaverConfig
from .data_structures import MailMessage, PostSource
from .errors import ConfigurationError, NoContentURLError, SaverError, handle_saver_error
from .logging_config import setup_logging
from .mail import ImapMailbox, mail_message_from_bytes
from .pipeline import PostPipeline

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='weibo-saver',
        description='Save Weibo and RedNote posts shared by mail as Markdown with their media',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Poll the configured mailbox and save every shared post
  weibo-saver listen

  # Process a saved mail (.eml) or a raw mail body
  weibo-saver process-file share.eml
  weibo-saver process-file body.html --source rednote
        """
    )
    parser.add_argument('--env-file', type=str, help='Configuration file (.env format)')
    parser.add_argument('--log-level', type=str, choices=['debug', 'info', 'warning', 'error'],
                        help='Override LOG_LEVEL')

    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('listen', help='Poll the IMAP mailbox for share mails')

    process_file = subparsers.add_parser('process-file', help='Run the pipeline over a saved mail')
    process_file.add_argument('path', type=Path, help='.eml file or raw HTML mail body')
    process_file.add_argument('--source', choices=[source.value for source in PostSource],
                              help='Source family of a raw body (default: route .eml by subject, else weibo)')
    return parser


def load_config(args: argparse.Namespace) -> SaverConfig:
    overrides = {}
    if args.log_level:
        overrides['log_level'] = args.log_level
    if args.env_file:
        return SaverConfig(_env_file=args.env_file, **overrides)
    return SaverConfig(**overrides)


async def run_listen(config: SaverConfig) -> int:
    if not config.imap_configured:
        raise ConfigurationError("IMAP_USER, IMAP_PASSWORD and IMAP_HOST must be set to listen for mail")

    mailbox = ImapMailbox(config)

    async with PostPipeline(config) as pipeline:
        async def handle(message: MailMessage):
            try:
                result = await pipeline.process_mail(message)
            except NoContentURLError as e:
                logger.warning(f"Skipping mail {message.subject!r}: {e.message}")
                return
            except SaverError as e:
                handle_saver_error(e)
                return
            if result is not None:
                logger.info(f"Saved {result.markdown_path}")

        logger.info(f"Listening for share mails every {config.imap_poll_interval}s")
        await mailbox.poll(handle)
    return 0


async def run_process_file(config: SaverConfig, path: Path, source: Optional[str]) -> int:
    raw = path.read_bytes()

    async with PostPipeline(config) as pipeline:
        try:
            if path.suffix.lower() == '.eml' and source is None:
                result = await pipeline.process_mail(mail_message_from_bytes(raw))
                if result is None:
                    logger.warning(f"{path} is not a share mail from an allowed sender")
                    return 1
            else:
                body = mail_message_from_bytes(raw).raw_html_body if path.suffix.lower() == '.eml' \
                    else raw.decode('utf-8', errors='replace')
                if source == PostSource.REDNOTE.value:
                    result = await pipeline.process_rednote(body)
                else:
                    result = await pipeline.process_weibo(body)
        except NoContentURLError as e:
            logger.warning(f"Skipping {path}: {e.message}")
            return 1

    print(result.markdown_path)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(config)
    config.log_configuration()

    try:
        if args.command == 'listen':
            return asyncio.run(run_listen(config))
        return asyncio.run(run_process_file(config, args.path, args.source))
    except SaverError as e:
        handle_saver_error(e)
        return 1
    except OSError as e:
        logger.error(f"Cannot read input: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())

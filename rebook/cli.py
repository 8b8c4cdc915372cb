"""Command-line interface for rebook."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rebook import __version__
from rebook.config import ReaderConfig
from rebook.errors import NarrationFailure, SelectionNotFound
from rebook.models import NarrationConfig
from rebook.positions import JsonPositionStore


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="rebook",
        description="Read EPUB books with sentence-synchronized narration",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    parser.add_argument(
        "input_file",
        nargs="?",
        help="EPUB or plain-text book",
    )
    parser.add_argument(
        "-p", "--provider",
        default=None,
        choices=["edge", "kokoro", "external", "silent"],
        help="Narration provider (default: edge, or REBOOK_PROVIDER)",
    )
    parser.add_argument(
        "-v", "--voice",
        default=None,
        help="Voice name (depends on the provider)",
    )
    parser.add_argument(
        "-s", "--speed",
        type=float,
        default=1.0,
        help="Reading speed (default: 1.0)",
    )
    parser.add_argument(
        "-l", "--language",
        default=None,
        help="Language code (default: en)",
    )
    parser.add_argument(
        "--word-limit",
        type=int,
        default=None,
        help="Words per page (default: 250)",
    )
    parser.add_argument(
        "--list-voices",
        action="store_true",
        help="List voices for the selected provider and exit",
    )
    parser.add_argument(
        "--pages",
        action="store_true",
        help="Print the pagination summary and exit",
    )
    parser.add_argument(
        "--show-page",
        type=int,
        default=None,
        metavar="N",
        help="Print page N (1-based) with its sentence indices",
    )
    parser.add_argument(
        "--find",
        default=None,
        metavar="TEXT",
        help="Resolve selected TEXT to a sentence index",
    )
    parser.add_argument(
        "--page",
        type=int,
        default=None,
        metavar="N",
        help="Page (1-based) the --find selection was made on (default: saved page)",
    )
    parser.add_argument(
        "--narrate",
        action="store_true",
        help="Narrate from the saved position, writing chunk audio to --output-dir",
    )
    parser.add_argument(
        "--from-sentence",
        type=int,
        default=None,
        help="Start narration at this sentence index",
    )
    parser.add_argument(
        "-o", "--output-dir",
        default=None,
        help="Directory for narrated chunks (default: <book>_audio)",
    )
    parser.add_argument(
        "--realtime",
        action="store_true",
        help="Advance at listening pace (waits for each clip's duration)",
    )
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Directory for saved positions (default: ~/.rebook)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    config = ReaderConfig.from_env()
    if args.provider:
        config.provider = args.provider
    if args.language:
        config.language = args.language
    if args.voice:
        config.voice = args.voice
    if args.word_limit is not None:
        if args.word_limit <= 0:
            parser.error("--word-limit must be positive")
        config.word_limit = args.word_limit
    if args.data_dir:
        config.data_dir = Path(args.data_dir).expanduser()

    from rebook.tts import get_provider, import_providers

    import_providers()

    if args.list_voices:
        provider = get_provider(config.provider, **config.provider_options())
        provider.initialize()
        voices = provider.list_voices(config.language)
        if not voices:
            print(f"No voices found for language '{config.language}' with provider '{config.provider}'")
            sys.exit(0)
        print(f"\nAvailable voices ({provider.name}, language: {config.language}):\n")
        for v in voices:
            gender = v.get("gender", "")
            print(f"  {v['name']:<35} {v['language']:<10} {gender}")
        sys.exit(0)

    if not args.input_file:
        parser.error("Specify the book to open")

    input_path = Path(args.input_file)
    if not input_path.exists():
        parser.error(f"File not found: {input_path}")

    from rebook.epub_parser import load_book
    from rebook.library import Library

    try:
        book = load_book(input_path, book_id=f"file-{input_path.resolve().as_posix()}")
    except Exception as e:
        logging.error("Could not open %s: %s", input_path, e)
        sys.exit(1)

    library = Library(
        position_store=JsonPositionStore(config.positions_path),
        word_limit=config.word_limit,
        lookahead=config.lookahead_pages,
        chunk_size=config.chunk_size,
    )
    library.add(book)
    session = library.activate(book.id)

    if args.pages:
        _print_pages(session)
        return

    if args.show_page is not None:
        _print_page(session, args.show_page - 1)
        return

    if args.find is not None:
        page_index = session.page_index if args.page is None else args.page - 1
        if not session.is_actionable(args.find):
            print("Selection too short")
            sys.exit(1)
        try:
            index = session.resolve_selection(args.find, page_index)
        except SelectionNotFound:
            print("No matching sentence")
            sys.exit(1)
        print(f"Sentence {index} (page {session.page_map[index] + 1}): {session.sentences[index]}")
        return

    if args.narrate:
        _narrate(session, config, args, input_path)
        return

    _print_summary(session)


def _print_summary(session) -> None:
    book = session.book
    print(f"\n{book.title}" + (f" - {book.author}" if book.author else ""))
    print(f"  Chapters:  {len(book.chapters)}")
    print(f"  Pages:     {session.page_count}")
    print(f"  Sentences: {len(session.sentences)}")
    print(f"  Position:  page {session.page_index + 1}, {session.sentence_progress_label}"
          f" ({session.progress_percent}% read)")


def _print_pages(session) -> None:
    for page in session.pagination.pages:
        sentence_ids = [i for i, p in enumerate(session.page_map) if p == page.index]
        span = f"{sentence_ids[0]}-{sentence_ids[-1]}" if sentence_ids else "-"
        print(f"  page {page.index + 1:>4}  {page.word_count:>4} words  "
              f"{len(page.paragraphs):>3} paragraphs  sentences {span}")


def _print_page(session, page_index: int) -> None:
    if not 0 <= page_index < session.page_count:
        print(f"Page out of range (1-{session.page_count})")
        sys.exit(1)
    for i, page in enumerate(session.page_map):
        if page == page_index:
            print(f"[{i}] {session.sentences[i]}")


def _narrate(session, config: ReaderConfig, args, input_path: Path) -> None:
    from rebook.audio.audio_utils import check_ffmpeg
    from rebook.audio.sink import FileAudioSink
    from rebook.progress import ProgressReporter
    from rebook.tts import get_provider

    # Clip durations are probed with ffprobe
    if args.realtime:
        check_ffmpeg()

    provider = get_provider(config.provider, **config.provider_options())
    provider.initialize()

    output_dir = Path(args.output_dir) if args.output_dir else input_path.with_name(f"{input_path.stem}_audio")
    sink = FileAudioSink(output_dir, realtime=args.realtime)
    narration = NarrationConfig(voice=config.voice, speed=args.speed, language=config.language)

    start = args.from_sentence if args.from_sentence is not None else session.sentence_index
    reporter = ProgressReporter(len(session.sentences), start=min(start, len(session.sentences)))

    def on_event(event) -> None:
        if event.kind in ("progress", "page_changed"):
            reporter.update(event.sentence_index, event.page_index)

    session.attach_playback(provider, sink, narration, on_event=on_event)

    try:
        asyncio.run(session.play(start))
    except KeyboardInterrupt:
        session.pause()
        print(f"\n\nNarration stopped. Resume with: rebook {input_path} --narrate")
        sys.exit(1)
    except NarrationFailure as e:
        logging.error("Playback failed: %s", e)
        if args.verbose:
            logging.exception("Details:")
        sys.exit(1)
    finally:
        reporter.close()

    print(f"\nNarration written to: {output_dir}")


if __name__ == "__main__":
    main()

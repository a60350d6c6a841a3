"""
Command-Line Interface for cadence.

Synthesizes speech without running the HTTP server.

Usage Examples:
    # Single text synthesis
    cadence --text "Hello there" --out hello.mp3

    # Positional text (same as above)
    cadence "Hello there" --out hello.mp3

    # Voice and prosody
    cadence "Hello there" --voice en-GB-SoniaNeural --rate 15% --pitch -5Hz

    # Batch processing from file (1 line = 1 item)
    cadence --file inputs.txt --out output_dir/

    # Dry-run mode (no network; shows the normalized request and SSML)
    cadence --text "Test" --dry-run --json

    # List the voices of the synthesis service
    cadence --voices --json

Environment Variables:
    CADENCE_SETTINGS: Settings file (default config/settings.yaml)
    CADENCE_DEFAULT_VOICE: Voice used when --voice is not given
    CADENCE_TRUSTED_TOKEN: Access token for the synthesis service
"""

from __future__ import annotations

import argparse
import json
import os
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from cadence.core.config import Settings, load_settings
from cadence.core.logging import configure_logging, get_logger, info, set_request_id, warn
from cadence.speech.errors import SpeechError
from cadence.speech.models import SynthesisRequest
from cadence.speech.ssml import build_ssml
from cadence.speech.validators import normalize_request


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="cadence CLI (speech synthesis)")

    # Input options (text vs file)
    parser.add_argument("text_pos", nargs="?", help="Text to synthesize (positional)")
    parser.add_argument("--text", help="Text to synthesize")
    parser.add_argument("--file", help="Batch input file (1 line = 1 item)")

    # Output options
    parser.add_argument("--out", help="Output path (file or dir in batch mode)")

    # Voice and prosody
    parser.add_argument("--voice", default="", help="Voice short name")
    parser.add_argument("--pitch", default="", help="Pitch, e.g. -10Hz")
    parser.add_argument("--rate", default="", help="Rate, e.g. 20%%")
    parser.add_argument("--volume", default="", help="Volume, e.g. -5%%")

    # Execution modes
    parser.add_argument("--config", default=None, help="Settings file path")
    parser.add_argument("--voices", action="store_true",
                        help="List available voices and exit")
    parser.add_argument("--dry-run", action="store_true",
                        help="Validate and render SSML without connecting")
    parser.add_argument("--json", action="store_true",
                        help="Print JSON summary")

    return parser.parse_args(argv)


def _load_settings(path: Optional[str]) -> Settings:
    """Load settings, falling back to built-in defaults when the file is missing."""
    path = path or os.getenv("CADENCE_SETTINGS", "config/settings.yaml")
    try:
        return load_settings(path)
    except FileNotFoundError:
        return Settings(raw={})


def _load_texts(args: argparse.Namespace) -> List[str]:
    """
    Load input texts from arguments or file.

    Raises:
        SystemExit: If no input provided or conflicting options used.
    """
    text = args.text or args.text_pos

    if args.file:
        if text:
            raise SystemExit("Use --file without --text or positional text.")
        lines = Path(args.file).read_text(encoding="utf-8").splitlines()
        items = [line.strip() for line in lines if line.strip()]
        if not items:
            raise SystemExit("Input file is empty.")
        return items

    if not text:
        raise SystemExit("Provide --text or a positional text.")
    return [text]


def _resolve_output_paths(args: argparse.Namespace, count: int) -> List[Path]:
    """Batch mode writes item_NNN.mp3 into a directory; single mode one file."""
    if args.file:
        out_dir = Path(args.out or "out")
        out_dir.mkdir(parents=True, exist_ok=True)
        return [out_dir / f"item_{i + 1:03d}.mp3" for i in range(count)]

    out_path = Path(args.out or "speech.mp3")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    return [out_path]


def _request_for(text: str, args: argparse.Namespace) -> SynthesisRequest:
    return SynthesisRequest(
        text=text,
        voice=args.voice,
        pitch=args.pitch,
        rate=args.rate,
        volume=args.volume,
    )


def _print_payload(payload: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def _list_voices(settings: Settings, as_json: bool) -> int:
    from cadence.speech.service import SpeechService

    voices = SpeechService(settings).list_voices()
    if as_json:
        print(json.dumps([v.to_dict() for v in voices], ensure_ascii=False))
    else:
        for v in voices:
            print(f"{v.short_name:<36} {v.gender:<8} {v.locale}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 when synthesis or validation fails).
    """
    args = _parse_args(argv)

    configure_logging()
    log = get_logger("cadence.cli")
    set_request_id(str(uuid4())[:12])

    settings = _load_settings(args.config)
    config = settings.get_service_config()

    try:
        if args.voices:
            return _list_voices(settings, args.json)

        texts = _load_texts(args)

        # Dry run: no network, so the voice is not checked against the catalog
        if args.dry_run:
            items = []
            for text in texts:
                normalized = normalize_request(_request_for(text, args), None,
                                               config.speech.default_voice)
                items.append({
                    "request": asdict(normalized),
                    "ssml": build_ssml(normalized, escape_text=config.speech.escape_ssml_text),
                })
            info(log, "dry_run", items=len(items))
            _print_payload({"ok": True, "dry_run": True, "items": items}, args.json)
            print("DRY_RUN_OK")
            return 0

        from cadence.speech.service import SpeechService

        out_paths = _resolve_output_paths(args, len(texts))
        service = SpeechService(settings)
        service.init_voices()

        results = []
        for text, out_path in zip(texts, out_paths):
            info(log, "synth_start", chars=len(text), out=str(out_path))
            result = service.synthesize(_request_for(text, args))
            out_path.write_bytes(result.audio_bytes)
            results.append({
                "out": str(out_path),
                "bytes": len(result.audio_bytes),
                "voice": result.voice,
                "seconds": round(result.total_seconds, 3),
            })

    except SpeechError as exc:
        warn(log, "cli_failed", code=exc.code, error=exc.message)
        _print_payload(exc.to_dict(), args.json)
        return 1

    _print_payload({"ok": True, "dry_run": False, "items": results}, args.json)
    print("CLI_OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

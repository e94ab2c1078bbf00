"""CLI entry point for parakeet_onnx.

Usage:
    python -m parakeet_onnx talk.mp4
    parakeet-onnx talk.wav --json
"""
import argparse
import json
import logging
import sys

from parakeet_onnx import DEFAULT_PROVIDERS, ParakeetError, align_segments, from_pretrained
from parakeet_onnx._loader import DEFAULT_MODEL, FEATURE_EXTRACTORS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='parakeet-onnx — local Parakeet TDT transcription with timestamps')
    parser.add_argument('audio', help='input audio or video file (wav/flac/mp3/m4a/mp4/…)')
    parser.add_argument('--model', default=DEFAULT_MODEL)
    parser.add_argument('--cache-dir', default=None)
    parser.add_argument('--provider', action='append', dest='providers',
                        help='onnxruntime execution provider (repeatable, default CPU)')
    parser.add_argument('--features', choices=FEATURE_EXTRACTORS, default='onnx',
                        help="front end: exported graph or built-in torch log-mel")
    parser.add_argument('--offline', action='store_true', help='only use already downloaded files')
    parser.add_argument('--json', action='store_true', help='print segments as JSON')
    parser.add_argument('-v', '--verbose', action='count', default=0)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format='%(asctime)s %(name)s %(levelname)s: %(message)s')

    def progress(message):
        print(message, file=sys.stderr)

    try:
        model = from_pretrained(
            args.model,
            providers=args.providers or DEFAULT_PROVIDERS,
            feature_extractor=args.features,
            cache_dir=args.cache_dir,
            local_files_only=args.offline,
            progress=progress,
        )
        result = model.transcribe(args.audio, progress=progress)
    except ParakeetError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    rows = align_segments(result)
    if args.json:
        print(json.dumps([row.to_dict() for row in rows], ensure_ascii=False, indent=2))
    else:
        for row in rows:
            print(f"[{row.start} - {row.end}] {row.text}")
    return 0


if __name__ == '__main__':
    sys.exit(main())

import argparse
import logging
import mimetypes
import sys
from pathlib import Path

import numpy as np

from brainscan import config
from brainscan.classifiers import HeuristicClassifier, SyntheticClassifier
from brainscan.exceptions import BrainScanError
from brainscan.model import ModelLoader
from brainscan.pipeline import AnalysisPipeline


def build_parser():
    parser = argparse.ArgumentParser(description="Classify a brain MRI image")
    parser.add_argument("--image", type=str, required=True, help="Path to input MRI image")
    parser.add_argument("--model", type=str, default=config.MODEL_PATH, help="Keras model path or URL")
    parser.add_argument("--seed", type=int, default=config.HEURISTIC_SEED, help="Seed for the heuristic fallback")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else config.LOG_LEVEL)

    path = Path(args.image)
    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"

    heuristic = HeuristicClassifier(SyntheticClassifier(np.random.default_rng(args.seed)))
    pipeline = AnalysisPipeline(ModelLoader(args.model, heuristic=heuristic))

    try:
        result = pipeline.analyze(path.read_bytes(), content_type)
    except (BrainScanError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if result.fallback_used:
        print("Note: trained model unavailable, using heuristic fallback")
    print(f"\nPrediction: {result.tumor_type.upper()}")
    print(f"Confidence: {result.confidence}%  Level: {result.tumor_level}\n")
    for name, pct in result.all_predictions:
        print(f"  {name:<16} {pct:>3}%")
    print("\nRecommendations:")
    for rec in result.recommendations:
        print(f"  - {rec}")
    print(f"\nProcessed in {result.processing_time:.2f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Train the credit and fraud models.

Trains the credit regressor and the fraud ensemble and writes timestamped
artifacts the model server loads with load_latest.

Usage:
    # Train both models on synthetic data
    python -m credchain_risk.train_models --generate --num-users 2000

    # Train the credit model from a labelled feature CSV
    python -m credchain_risk.train_models --type credit --input data/credit_features.csv

    # Custom configuration and output directory
    python -m credchain_risk.train_models --generate --config config/default.yaml --output models/v2/
"""

import argparse
import sys
from pathlib import Path

from .config import load_config
from .data.generator import PaymentDataGenerator, credit_frame, fraud_frame
from .errors import TrainingError
from .training.trainer import ModelTrainer, TrainingResult, load_training_data
from .utils.logging import logger_from_config


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Train credit and fraud models for the risk engine.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Generate synthetic data and train both models
    python -m credchain_risk.train_models --generate --num-users 2000

    # Train the fraud model from a CSV with fraud features and is_fraud
    python -m credchain_risk.train_models --type fraud --input data/fraud_features.csv
        """,
    )

    input_group = parser.add_mutually_exclusive_group(required=True)
    input_group.add_argument(
        "-i", "--input",
        type=str,
        nargs="?",
        const="",
        help="CSV with labelled feature rows (requires --type credit or fraud). "
             "Without a value, paths.training_data under paths.data_dir is used.",
    )
    input_group.add_argument(
        "--generate",
        action="store_true",
        help="Generate synthetic training data.",
    )

    parser.add_argument(
        "-t", "--type",
        choices=["credit", "fraud", "all"],
        default="all",
        help="Which model to train. Default: all",
    )
    parser.add_argument(
        "-n", "--num-users",
        type=int,
        default=1000,
        help="Number of synthetic users/transactions (with --generate). Default: 1000",
    )
    parser.add_argument(
        "-f", "--fraud-ratio",
        type=float,
        default=0.15,
        help="Fraud ratio for synthetic transactions (with --generate). Default: 0.15",
    )
    parser.add_argument(
        "-s", "--seed",
        type=int,
        default=None,
        help="Random seed; overrides training.seed from the configuration.",
    )
    parser.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        help="Path to YAML configuration. Default: config/default.yaml",
    )
    parser.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        help="Directory for artifacts; overrides paths.models_dir.",
    )
    parser.add_argument(
        "--save-data",
        type=str,
        nargs="?",
        const="",
        default=None,
        help="Also write the generated feature CSVs to this directory (default: paths.data_dir).",
    )

    args = parser.parse_args(argv)
    if args.input is not None and args.type == "all":
        parser.error("--input requires --type credit or --type fraud")
    return args


def print_result(result: TrainingResult) -> None:
    """Print a training summary."""
    print("\n" + "=" * 60)
    print(f"TRAINING COMPLETE: {result.model_type}")
    print("=" * 60)
    print(f"  Training time:     {result.duration_seconds:.1f}s")
    print(f"  Train records:     {result.num_train}")
    print(f"  Validation records:{result.num_validation:>6}")
    print(f"  Artifact:          {result.artifact_dir}")
    print("\n  Validation metrics:")
    for name, value in result.metrics.items():
        print(f"    {name:<18} {value:.4f}")
    print("=" * 60)


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except ValueError as e:
        print(f"ERROR: {e}")
        return 1

    updates = {}
    if args.seed is not None:
        updates["training"] = config.training.model_copy(update={"seed": args.seed})
    if args.output:
        updates["paths"] = config.paths.model_copy(update={"models_dir": args.output})
    if updates:
        config = config.model_copy(update=updates)

    logger = logger_from_config(config.logging, "credchain_risk.train")
    trainer = ModelTrainer(config, logger=logger)
    types = ["credit", "fraud"] if args.type == "all" else [args.type]

    try:
        datasets = {}
        if args.generate:
            generator = PaymentDataGenerator(seed=config.training.seed, config=config)
            print(f"Generating synthetic data for {args.num_users} users...")
            if "credit" in types:
                datasets["credit"] = generator.credit_dataset(args.num_users)
            if "fraud" in types:
                datasets["fraud"] = generator.fraud_dataset(args.num_users, args.fraud_ratio)
            if args.save_data is not None:
                paths = config.paths
                if args.save_data:
                    paths = paths.model_copy(update={"data_dir": args.save_data})
                Path(paths.data_dir).mkdir(parents=True, exist_ok=True)
                if "credit" in datasets:
                    credit_frame(*datasets["credit"]).to_csv(paths.get_path("credit_features.csv"), index=False)
                if "fraud" in datasets:
                    fraud_frame(*datasets["fraud"]).to_csv(paths.get_path("fraud_features.csv"), index=False)
        else:
            input_path = args.input or config.paths.get_path("training_data")
            print(f"Loading data from {input_path}...")
            datasets[args.type] = load_training_data(input_path, args.type)

        for model_type in types:
            X, y = datasets[model_type]
            print(f"\nTraining {model_type} model on {len(X)} rows...")
            if model_type == "credit":
                result = trainer.train_credit(X, y)
            else:
                result = trainer.train_fraud(X, y)
            print_result(result)

        print(f"\nDone! Artifacts are in {trainer.models_dir.absolute()}")
        print("Start the server with: python -m credchain_risk.serve")
        return 0

    except (TrainingError, ValueError, FileNotFoundError) as e:
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""
LFM CLI Commands

Feature extraction, win probability estimation and calibration from the shell.
"""

import json
import logging
import sys
from typing import Optional

import click
import structlog

from lfm import __version__
from lfm.calibration import ConfidenceCalibrator
from lfm.config import get_current_environment
from lfm.exceptions import LFMError
from lfm.features import CaseFeatureExtractor
from lfm.models import CaseType, EstimateContext
from lfm.scoring import CaseSimilarityScorer, WinProbabilityEstimator
from lfm.storage import CaseCorpus, rank_similar_cases
from lfm.weights import WeightStore


def _configure_logging(verbose: bool) -> None:
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if verbose else logging.WARNING),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
    )


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


@click.group()
@click.version_option(version=__version__, prog_name='lfm')
@click.option('--weights', 'weights_path', type=click.Path(exists=True, dir_okay=False),
              help='Weights YAML file (defaults to the environment\'s, then the packaged one)')
@click.option('-v', '--verbose', is_flag=True, help='Log debug events to stderr')
@click.pass_context
def cli(ctx, weights_path, verbose):
    """LFM Command Line Interface - grievance features, estimates and calibration."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj['store'] = WeightStore(config_path=weights_path or get_current_environment().weights_path)


@cli.command('features')
@click.argument('text')
@click.option('--case-type', type=click.Choice([c.value for c in CaseType]), default=None,
              help='Case type hint, overrides detection')
def features(text, case_type):
    """Print the features extracted from a grievance text.

    Example:
        lfm features "Fired without prior warning, Article 12.3"
    """
    record = CaseFeatureExtractor().extract(text, hinted_type=case_type)
    _echo_json(record.to_dict())


@cli.command('estimate')
@click.argument('text')
@click.option('--corpus', 'corpus_path', type=click.Path(exists=True, dir_okay=False),
              help='JSON file of stored cases')
@click.option('--limit', default=3, show_default=True, help='Similar cases to use')
@click.option('--min-score', default=40.0, show_default=True, help='Minimum similarity (0-100)')
@click.pass_context
def estimate(ctx, text, corpus_path: Optional[str], limit, min_score):
    """Estimate the win probability of a grievance.

    Example:
        lfm estimate "Suspended without investigation" --corpus cases.json
    """
    weights = ctx.obj['store'].get_weights()
    try:
        corpus = CaseCorpus.load_json(corpus_path) if corpus_path else CaseCorpus()
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Cannot load corpus: {e}")

    record = CaseFeatureExtractor().extract(text)
    ranked = rank_similar_cases(
        record, corpus, limit=limit, min_score=min_score,
        scorer=CaseSimilarityScorer(weights.similarity),
    )
    result = WinProbabilityEstimator(weights.win_probability).estimate(
        EstimateContext(case_type=record.case_type.value), ranked,
    )
    _echo_json({
        'features': record.to_dict(),
        'similar_cases': [r.to_dict() for r in ranked],
        'win_probability': result.to_dict(),
    })


@cli.command('calibrate')
@click.argument('case_type')
@click.argument('data_file', type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def calibrate(ctx, case_type, data_file):
    """Fit a calibration profile from {"predictions": [...], "outcomes": [...]}.

    Example:
        lfm calibrate termination history.json
    """
    try:
        with open(data_file, 'r', encoding='utf-8') as f:
            data = json.load(f)
        calibrator = ConfidenceCalibrator(ctx.obj['store'].get_weights().calibration)
        profile = calibrator.calibrate(case_type, data.get('predictions', []), data.get('outcomes', []))
    except (OSError, ValueError, AttributeError, LFMError) as e:
        raise click.ClickException(f"Calibration failed: {e}")
    _echo_json(profile.to_dict())


if __name__ == '__main__':
    cli()

"""Command-line interface for the classification framework.

Provides ``train``, ``predict``, ``evaluate`` and ``features`` commands with
rich terminal output using the ``click`` and ``rich`` libraries. Input
files are JSON Lines with one ``{"text": ..., "label": ...}`` object per
line (``label`` is omitted for unlabelled data).

Smoothing constants are read from ``CLASSIFIER_*`` environment variables,
which may also live in a ``.env`` file.

Usage::

    classification-framework train labelled.jsonl -u unlabelled.jsonl --em-iterations 3 -m model/
    classification-framework predict model/ --text "a wonderful, moving film"
    classification-framework evaluate model/ gold.jsonl
    classification-framework features model/ --top-n 15
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import ClassifierConfig
from .errors import ClassificationFrameworkError
from .evaluation import evaluate as evaluate_classifier
from .evaluation import fit_classifier
from .models import OTHER, Label
from .naive_bayes import NaiveBayesClassifier
from .ovr import OneVsRestClassifier
from .persistence import ModelState
from .pipeline import FeatureExtractionPipeline

console = Console()
err_console = Console(stderr=True)

LOGGER = logging.getLogger(__name__)

_VARIANTS = {
    "standard": lambda labels, config: NaiveBayesClassifier(labels=labels, config=config),
    "fm": NaiveBayesClassifier.feature_marginals,
    "sfe": NaiveBayesClassifier.self_training,
}


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
        force=True,
    )


def _read_jsonl(path: Path) -> list[dict]:
    records = []
    with open(path, "r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                raise click.ClickException(f"{path}:{line_no}: invalid JSON ({e.msg})")
            if not isinstance(record, dict) or "text" not in record:
                raise click.ClickException(f"{path}:{line_no}: expected an object with a 'text' field")
            records.append(record)
    return records


def _pipeline_for(state: ModelState) -> FeatureExtractionPipeline:
    """Rebuild the feature extractor a model was trained with."""
    min_n, max_n = state.metadata.get("ngram_range", [1, 1])
    return FeatureExtractionPipeline(
        ngram_range=(min_n, max_n),
        remove_stop_words=state.metadata.get("remove_stop_words", True),
        feature_indexer=state.feature_indexer,
        label_indexer=state.label_indexer,
    )


def _load_state(model_dir: Path) -> ModelState:
    try:
        return ModelState.load(model_dir)
    except (OSError, ClassificationFrameworkError) as e:
        console.print(f"[bold red]Error:[/] {e}")
        sys.exit(1)


def _label_name(state: ModelState, label: Label) -> str:
    if label is OTHER:
        return OTHER.name
    return state.label_indexer.value(label, default=str(label))


@click.group()
@click.version_option(package_name="classification-framework")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def main(verbose: bool) -> None:
    """Semi-supervised Naive Bayes text classification."""
    load_dotenv()
    _configure_logging(verbose)


@main.command()
@click.argument("labelled", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--unlabelled", "-u", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="Unlabelled JSONL for semi-supervised training.")
@click.option("--variant", type=click.Choice(sorted(_VARIANTS)), default="standard",
              help="Likelihood estimator.")
@click.option("--ovr", is_flag=True, help="Wrap the classifier in one-vs-rest learners.")
@click.option("--em-iterations", type=click.IntRange(min=0), default=0,
              help="EM cycles over the unlabelled data.")
@click.option("--em-weight", type=click.FloatRange(min=0, min_open=True), default=None,
              help="Weight of EM soft counts (defaults to CLASSIFIER_EM_WEIGHT or 0.1).")
@click.option("--ngrams", type=click.IntRange(min=1), default=1, help="Largest n-gram size.")
@click.option("--keep-stop-words", is_flag=True, help="Do not remove stopwords.")
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Training threads.")
@click.option("--model-dir", "-m", type=click.Path(file_okay=False, path_type=Path), required=True,
              help="Directory to save the model to.")
def train(
    labelled: Path,
    unlabelled: Optional[Path],
    variant: str,
    ovr: bool,
    em_iterations: int,
    em_weight: Optional[float],
    ngrams: int,
    keep_stop_words: bool,
    workers: Optional[int],
    model_dir: Path,
) -> None:
    """Train a classifier and save it to a model directory.

    Example: classification-framework train reviews.jsonl -m model/
    """
    if unlabelled is None:
        if em_iterations:
            raise click.UsageError("--em-iterations needs --unlabelled data.")
        if variant != "standard":
            raise click.UsageError(f"--variant {variant} needs --unlabelled data.")

    try:
        config = ClassifierConfig.from_env()
    except ValueError as e:
        raise click.ClickException(f"Invalid CLASSIFIER_* setting: {e}")

    pipeline = FeatureExtractionPipeline(ngram_range=(1, ngrams), remove_stop_words=not keep_stop_words)
    labelled_docs = pipeline.process_all(_read_jsonl(labelled))
    labelled_docs = [doc for doc in labelled_docs if doc.is_labelled]
    unlabelled_docs = (
        pipeline.process_all({**record, "label": None} for record in _read_jsonl(unlabelled))
        if unlabelled else None
    )
    labels = {doc.label for doc in labelled_docs}
    if not labels:
        raise click.ClickException(f"No labelled records in {labelled}")

    def factory(ls):
        return _VARIANTS[variant](ls, config)

    classifier = OneVsRestClassifier(labels, factory, workers) if ovr else factory(labels)

    with console.status("[bold blue]Training...", spinner="dots"):
        try:
            fit_classifier(classifier, labelled_docs, unlabelled_docs, em_iterations, em_weight)
        except (ValueError, ClassificationFrameworkError) as e:
            console.print(f"[bold red]Error:[/] {e}")
            sys.exit(1)

    state = ModelState(
        classifier,
        labelled_docs,
        pipeline.feature_indexer,
        pipeline.label_indexer,
        metadata={
            "variant": variant,
            "ovr": ovr,
            "em_iterations": em_iterations,
            "ngram_range": list(pipeline.ngram_range),
            "remove_stop_words": pipeline.remove_stop_words,
            "config": config.to_dict(),
        },
    )
    state.save(model_dir)

    table = Table(title="Training Summary", show_lines=False)
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    table.add_row("Classifier", classifier.kind.value)
    table.add_row("Labels", ", ".join(_label_name(state, l) for l in classifier.sorted_labels()))
    table.add_row("Labelled documents", str(len(labelled_docs)))
    table.add_row("Unlabelled documents", str(len(unlabelled_docs or [])))
    table.add_row("EM iterations", str(em_iterations))
    table.add_row("Vocabulary", str(len(classifier.vocab)))
    console.print(table)
    console.print(f"\n[dim]Model saved to {model_dir}[/]")


@main.command()
@click.argument("model_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--text", "-t", "texts", multiple=True, help="Text to classify (repeatable).")
@click.option("--input", "-i", "input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="JSONL of records to classify.")
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich",
              help="Output format.")
def predict(model_dir: Path, texts: tuple[str, ...], input_file: Optional[Path], output: str) -> None:
    """Classify texts with a saved model.

    Example: classification-framework predict model/ -t "terrible plot"
    """
    records = [{"text": text} for text in texts]
    if input_file:
        records.extend(_read_jsonl(input_file))
    if not records:
        raise click.UsageError("Provide --text or --input.")

    state = _load_state(model_dir)
    pipeline = _pipeline_for(state)
    classifier = state.classifier

    results = []
    for record in records:
        doc = pipeline.process(record["text"], add_features=False)
        probabilities = classifier.predict(doc.features)
        best = max(probabilities, key=probabilities.get)  # type: ignore[arg-type]
        results.append({
            "text": record["text"],
            "label": _label_name(state, best),
            "probabilities": {
                _label_name(state, label): round(p, 4)
                for label, p in sorted(probabilities.items(), key=lambda x: x[1], reverse=True)
            },
        })

    if output == "json":
        click.echo(json.dumps(results, indent=2))
        return

    table = Table(title="Predictions", show_lines=True)
    table.add_column("Text", max_width=60)
    table.add_column("Label", style="bold green")
    table.add_column("Probabilities", style="dim")
    for result in results:
        probs = ", ".join(f"{label}: {p:.2f}" for label, p in result["probabilities"].items())
        table.add_row(result["text"], result["label"], probs)
    console.print(table)


@main.command()
@click.argument("model_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("gold", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Choice(["rich", "json"]), default="rich",
              help="Output format.")
def evaluate(model_dir: Path, gold: Path, output: str) -> None:
    """Score a saved model against labelled JSONL.

    Example: classification-framework evaluate model/ test.jsonl
    """
    state = _load_state(model_dir)
    pipeline = _pipeline_for(state)
    gold_docs = [
        pipeline.process(record["text"], record.get("label"), add_features=False)
        for record in _read_jsonl(gold)
    ]
    try:
        metrics = evaluate_classifier(state.classifier, gold_docs)
    except ClassificationFrameworkError as e:
        console.print(f"[bold red]Error:[/] {e}")
        sys.exit(1)

    names = [_label_name(state, label) for label in metrics.labels]
    if output == "json":
        data = metrics.to_dict()
        data["per_class"] = {
            name: {k: round(v, 4) for k, v in metrics.measures[label]._asdict().items()}
            for name, label in zip(names, metrics.labels)
        }
        data["confusion_matrix"] = {
            actual_name: {
                predicted_name: metrics.confusion_matrix[actual][predicted]
                for predicted_name, predicted in zip(names, metrics.labels)
            }
            for actual_name, actual in zip(names, metrics.labels)
        }
        click.echo(json.dumps(data, indent=2))
        return

    console.print(f"[bold]Accuracy:[/] {metrics.accuracy:.2%} "
                  f"({metrics.total_correct}/{metrics.total_documents})   "
                  f"[bold]Macro FB1:[/] {metrics.macro_fb1:.4f}")
    table = Table(title="Per-class Metrics")
    table.add_column("Label", style="bold")
    for column in ("Precision", "Recall", "FB1", "Support"):
        table.add_column(column, justify="right")
    support = metrics.support
    for name, label in zip(names, metrics.labels):
        m = metrics.measures[label]
        table.add_row(name, f"{m.precision:.4f}", f"{m.recall:.4f}", f"{m.fb1:.4f}", str(support[label]))
    console.print(table)

    matrix = Table(title="Confusion Matrix", caption="rows = actual, columns = predicted")
    matrix.add_column("", style="bold")
    for name in names:
        matrix.add_column(name, justify="right")
    for name, actual in zip(names, metrics.labels):
        matrix.add_row(name, *(str(metrics.confusion_matrix[actual][p]) for p in metrics.labels))
    console.print(matrix)


@main.command()
@click.argument("model_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--top-n", "-n", type=click.IntRange(min=1), default=10, help="Features per label.")
@click.option("--trim", type=click.FloatRange(min=0), default=None,
              help="Delete features whose total count is below this cutoff and re-save.")
def features(model_dir: Path, top_n: int, trim: Optional[float]) -> None:
    """Show the most informative features of each label.

    Example: classification-framework features model/ --top-n 15
    """
    state = _load_state(model_dir)
    classifier = state.classifier
    if isinstance(classifier, OneVsRestClassifier):
        learners = {
            label: learner for label, learner in classifier.learners.items()
            if isinstance(learner, NaiveBayesClassifier)
        }
    elif isinstance(classifier, NaiveBayesClassifier):
        learners = {OTHER: classifier}
    else:
        raise click.ClickException("Precomputed models keep no counts; retrain to inspect features.")

    if trim is not None:
        removed = set()
        for learner in learners.values():
            removed |= learner.trim_infrequent_features(trim)
        state.save(model_dir)
        console.print(f"[bold]Trimmed {len(removed)} feature(s)[/] below count {trim}")

    for target, learner in learners.items():
        # binary learners report both labels, OVR learners only their own
        labels = learner.sorted_labels() if target is OTHER else [target]
        for label in labels:
            table = Table(title=f"Most informative: {_label_name(state, label)}")
            table.add_column("Feature")
            table.add_column("Log ratio", justify="right")
            for feature, score in learner.most_informative_features(label, top_n):
                table.add_row(state.feature_indexer.value(feature, default=str(feature)), f"{score:.4f}")
            console.print(table)


if __name__ == "__main__":
    main()

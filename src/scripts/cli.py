import argparse
import json
import logging
import sys
from pathlib import Path

from src.palladian_ner.models import Annotation, NERResult
from src.palladian_ner.process import process_tree
from src.palladian_ner.settings import (
    DEFAULT_CONFIG_PATH,
    TaggingSettings,
    load_settings,
    resolve_model_path,
)
from src.palladian_ner.tagger import PalladianNer

log = logging.getLogger(__name__)


def read_seed_annotations(path: Path) -> list[Annotation]:
    """One ``TAG<TAB>value`` per line; blank lines and lines of other shapes are skipped."""
    annotations = []
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, 1):
            cols = line.rstrip("\r\n").split("\t")
            if len(cols) != 2 or not cols[0].strip() or not cols[1].strip():
                if line.strip():
                    log.warning("Skipping seed line %d: %r", lineno, line.rstrip())
                continue
            annotations.append(Annotation(start=0, value=cols[1].strip(), tag=cols[0].strip()))
    return annotations


def _tagger_from_args(args) -> PalladianNer:
    _, tagging_overrides = load_settings(Path(args.config))
    model_path = Path(args.model) if args.model else resolve_model_path(Path(args.config))
    tagger = PalladianNer.from_model_file(model_path)
    if tagging_overrides:
        tagger.tagging_settings = TaggingSettings.for_language(tagger.model.language_mode, **tagging_overrides)
    return tagger


def cmd_train(args):
    training, tagging_overrides = load_settings(Path(args.config))
    updates = {}
    if args.language_mode:
        updates["language_mode"] = args.language_mode
    if args.training_mode:
        updates["training_mode"] = args.training_mode
    if args.min_count is not None:
        updates["min_dictionary_count"] = args.min_count
    if args.equalize:
        updates["equalize_type_counts"] = True
    if args.seed is not None:
        updates["seed"] = args.seed
    if updates:
        training = training.model_validate({**training.model_dump(), **updates})

    tagging = TaggingSettings.for_language(training.language_mode, **tagging_overrides) if tagging_overrides else None
    tagger = PalladianNer(training_settings=training, tagging_settings=tagging)
    seeds = read_seed_annotations(Path(args.seeds)) if args.seeds else []
    model_path = Path(args.model) if args.model else resolve_model_path(Path(args.config))

    if args.training_file:
        tagger.train(args.training_file, seeds, model_path=model_path)
    elif seeds:
        tagger.train_from_annotations(seeds, model_path=model_path)
    else:
        raise SystemExit("train needs a training file and/or --seeds")
    if args.entity_dictionary:
        tagger.set_entity_dictionary(args.entity_dictionary)
        tagger.save_model(model_path)


def cmd_tag(args):
    tagger = _tagger_from_args(args)
    if args.entity_dictionary:
        tagger.set_entity_dictionary(args.entity_dictionary)
    text = Path(args.input).read_text(encoding="utf-8") if args.input != "-" else sys.stdin.read()
    result = NERResult.from_annotations(tagger.get_annotations(text))
    payload = json.dumps(result.model_dump(), ensure_ascii=False, indent=2)
    if args.output:
        Path(args.output).write_text(payload + "\n", encoding="utf-8")
    else:
        print(payload)


def cmd_evaluate(args):
    tagger = _tagger_from_args(args)
    result = tagger.evaluate(args.test_file)
    print(json.dumps(result.summary(), indent=2))


def cmd_process(args):
    model_path = Path(args.model) if args.model else resolve_model_path(Path(args.config))
    process_tree(args.input_dir, args.output_dir, model_path, pattern=args.pattern, workers=args.workers)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Palladian NER: train, tag, evaluate and batch-process.")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG_PATH))
    parser.add_argument("--model", default=None, help="model file (default: config / $PALLADIAN_NER_MODEL)")
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # train
    p1 = subparsers.add_parser("train")
    p1.add_argument("training_file", nargs="?", help="column file: token<TAB>tag, blank line between sentences")
    p1.add_argument("--seeds", help="extra annotations, TAG<TAB>value per line")
    p1.add_argument("--entity-dictionary", help="CONCEPT###ENTITY file replacing the learned entity dictionary")
    p1.add_argument("--language-mode", choices=["English", "LanguageIndependent"])
    p1.add_argument("--training-mode", choices=["Complete", "Sparse"])
    p1.add_argument("--min-count", type=int)
    p1.add_argument("--equalize", action="store_true")
    p1.add_argument("--seed", type=int)
    p1.set_defaults(func=cmd_train)

    # tag
    p2 = subparsers.add_parser("tag")
    p2.add_argument("input", help="text file, or - for stdin")
    p2.add_argument("--output")
    p2.add_argument("--entity-dictionary")
    p2.set_defaults(func=cmd_tag)

    # evaluate
    p3 = subparsers.add_parser("evaluate")
    p3.add_argument("test_file")
    p3.set_defaults(func=cmd_evaluate)

    # process
    p4 = subparsers.add_parser("process")
    p4.add_argument("--input_dir", required=True)
    p4.add_argument("--output_dir", required=True)
    p4.add_argument("--pattern", default="*.jsonl")
    p4.add_argument("--workers", type=int, default=1)
    p4.set_defaults(func=cmd_process)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()

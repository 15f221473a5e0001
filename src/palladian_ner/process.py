"""Batch stage: reads JSONL rows with a ``text`` field, tags them, writes them back with entities."""
from __future__ import annotations
import json
import logging
from pathlib import Path
from concurrent.futures import ProcessPoolExecutor
from tqdm import tqdm

from .models import NERResult
from .tagger import PalladianNer

log = logging.getLogger(__name__)

# Global tagger (initialized once per process)
_tagger: PalladianNer | None = None
_tagger_path: str | None = None


def _init_tagger(model_path: str):
    global _tagger, _tagger_path
    _tagger = PalladianNer.from_model_file(model_path)
    _tagger_path = str(model_path)


def process_file(input_path: Path, output_path: Path, model_path: str | Path) -> dict:
    """Tag every row of a single JSONL file.

    Returns: {"input": str, "output": str, "total": int, "with_entities": int, "failed": int}
    """
    if _tagger is None or _tagger_path != str(model_path):
        _init_tagger(str(model_path))

    rows = []
    with open(input_path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                rows.append(json.loads(line))

    output_path.parent.mkdir(parents=True, exist_ok=True)
    if not rows:
        output_path.write_text("", encoding="utf-8")
        return {"input": str(input_path), "output": str(output_path),
                "total": 0, "with_entities": 0, "failed": 0}

    texts = [r.get("text", "") or "" for r in rows]
    outcomes = _tagger.get_annotations_batch(texts)

    with_entities = 0
    failed = 0
    with open(output_path, "w", encoding="utf-8") as out:
        for row, outcome in zip(rows, outcomes):
            if outcome.ok:
                result = NERResult.from_annotations(outcome.annotations)
                row["entities"] = [e.model_dump() for e in result.entities]
                row["entity_labels"] = result.entity_labels
                if result.entities:
                    with_entities += 1
            else:
                row["entities"] = []
                row["entity_labels"] = []
                row["error"] = outcome.error
                failed += 1
            out.write(json.dumps(row, ensure_ascii=False) + "\n")

    return {
        "input": str(input_path),
        "output": str(output_path),
        "total": len(rows),
        "with_entities": with_entities,
        "failed": failed,
    }


def _process_file_wrapper(args):
    """Wrapper for multiprocessing."""
    return process_file(*args)


def process_tree(
    input_dir: str | Path,
    output_dir: str | Path,
    model_path: str | Path,
    pattern: str = "*.jsonl",
    workers: int = 1,
) -> list[dict]:
    """Walk input_dir for JSONL files and tag each one into output_dir.

    Args:
        input_dir: directory searched recursively for ``pattern``
        output_dir: mirrors the layout of input_dir
        model_path: trained model file
        pattern: glob for input files
        workers: parallel file workers (each loads the model once)
    """
    input_dir = Path(input_dir)
    output_dir = Path(output_dir)

    files = sorted(input_dir.rglob(pattern))
    if not files:
        log.warning("No %s files found under %s", pattern, input_dir)
        return []

    log.info("Found %d files to process", len(files))

    tasks = []
    for fp in files:
        rel = fp.relative_to(input_dir)
        out_fp = output_dir / rel
        # Skip files already up to date
        if out_fp.exists() and out_fp.stat().st_mtime > fp.stat().st_mtime:
            log.debug("Skipping %s (up to date)", rel)
            continue
        tasks.append((fp, out_fp, str(model_path)))

    if not tasks:
        log.info("All files up to date, nothing to process")
        return []

    log.info("Processing %d files", len(tasks))

    if workers <= 1:
        _init_tagger(str(model_path))
        results = [process_file(*task) for task in tqdm(tasks, desc="NER")]
    else:
        with ProcessPoolExecutor(
            max_workers=workers,
            initializer=_init_tagger,
            initargs=(str(model_path),),
        ) as pool:
            results = list(tqdm(
                pool.map(_process_file_wrapper, tasks),
                total=len(tasks),
                desc="NER",
            ))

    total_rows = sum(r["total"] for r in results)
    total_with = sum(r["with_entities"] for r in results)
    total_failed = sum(r["failed"] for r in results)
    log.info(
        "NER complete: %d files, %d rows, %d with entities (%.1f%%), %d failed",
        len(results), total_rows, total_with,
        100.0 * total_with / max(total_rows, 1), total_failed,
    )
    if total_failed:
        log.warning("%d rows could not be tagged, see their \"error\" field", total_failed)
    return results

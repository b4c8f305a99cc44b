"""Per-file batch runner shared by the encode and decode CLIs.

Every file is an independent unit of work. A file that fails is reported
on stderr and skipped; the rest of the batch keeps going.
"""

import glob
import os
import sys
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List

from tqdm import tqdm


@dataclass
class BatchReport:
    results: Dict[str, object] = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def n_ok(self) -> int:
        return len(self.results)

    @property
    def n_failed(self) -> int:
        return len(self.failed)


def collect_paths(folder: str, suffixes: Iterable[str]) -> List[str]:
    """Sorted files in `folder` whose names end with one of `suffixes`."""
    paths = set()
    for suffix in suffixes:
        paths.update(glob.glob(os.path.join(folder, f"*{suffix}")))
    return sorted(p for p in paths if os.path.isfile(p))


def _record_failure(report: BatchReport, path: str, e: Exception) -> None:
    print(f"Error processing {os.path.basename(path)}: {e}", file=sys.stderr)
    report.failed[path] = str(e)


def run_batch(fn: Callable[[str], object], paths: List[str], workers: int = 1,
              desc: str = "files", progress: bool = True) -> BatchReport:
    """Run fn(path) for every path; workers > 1 fans out over a process pool.

    fn must be picklable (a module-level function or a functools.partial
    of one) when workers > 1. No ordering is kept between files.
    """
    report = BatchReport()

    if workers <= 1:
        for p in tqdm(paths, desc=desc, unit=" files", disable=not progress):
            try:
                report.results[p] = fn(p)
            except Exception as e:
                _record_failure(report, p, e)
        return report

    with ProcessPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(fn, p): p for p in paths}
        for future in tqdm(as_completed(futures), total=len(futures),
                           desc=desc, unit=" files", disable=not progress):
            p = futures[future]
            try:
                report.results[p] = future.result()
            except Exception as e:
                _record_failure(report, p, e)
    return report

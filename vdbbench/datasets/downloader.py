"""
Dataset download utilities.
"""

import logging
from pathlib import Path
from typing import Dict

import requests
from tqdm import tqdm

logger = logging.getLogger(__name__)

ANN_BENCHMARKS_URL = "http://ann-benchmarks.com/{name}.hdf5"

KNOWN_DATASETS: Dict[str, str] = {
    "gist-960-euclidean": ANN_BENCHMARKS_URL.format(name="gist-960-euclidean"),
    "sift-128-euclidean": ANN_BENCHMARKS_URL.format(name="sift-128-euclidean"),
    "fashion-mnist-784-euclidean": ANN_BENCHMARKS_URL.format(name="fashion-mnist-784-euclidean"),
}


def download_file(
    url: str,
    dest_path: str,
    chunk_size: int = 1 << 20,
    show_progress: bool = True,
) -> str:
    """
    Download a file from URL with progress bar.

    The file is written under a ``.part`` name and renamed when complete, so
    an interrupted download never looks like a valid dataset.

    Args:
        url: URL to download from
        dest_path: Destination file path
        chunk_size: Download chunk size
        show_progress: Show progress bar

    Returns:
        Path to downloaded file
    """
    dest_path = Path(dest_path)
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    part_path = dest_path.with_name(dest_path.name + ".part")

    response = requests.get(url, stream=True, timeout=60)
    response.raise_for_status()

    total_size = int(response.headers.get("content-length", 0))

    with open(part_path, "wb") as f, tqdm(
        total=total_size,
        unit="iB",
        unit_scale=True,
        desc=dest_path.name,
        disable=not show_progress,
    ) as progress:
        for chunk in response.iter_content(chunk_size=chunk_size):
            if chunk:
                f.write(chunk)
                progress.update(len(chunk))

    part_path.replace(dest_path)
    return str(dest_path)


def download_dataset(name: str, data_dir: str = "./data", force: bool = False) -> Path:
    """
    Download an ANN-Benchmarks dataset unless it already exists.

    Args:
        name: Dataset name, e.g. ``gist-960-euclidean``
        data_dir: Target directory
        force: Download even if the file exists

    Returns:
        Path of the HDF5 file

    Raises:
        ValueError: If the dataset is unknown
    """
    if name not in KNOWN_DATASETS:
        available = ", ".join(sorted(KNOWN_DATASETS))
        raise ValueError(f"Unknown dataset: {name}. Available: {available}")

    dest = Path(data_dir) / f"{name}.hdf5"
    if dest.exists() and not force:
        logger.info("Dataset already present: %s", dest)
        return dest

    download_file(KNOWN_DATASETS[name], str(dest))
    return dest

"""
Output naming for per-class probability maps.

Named maps are looked up in a table keyed by the number of tissue classes;
class counts without an entry produce no named maps.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)


def probability_map_outputs(
    number_of_tissues: int,
    table: Dict[int, Sequence[Tuple[int, str]]],
    output_dir: Union[str, Path] = ".",
    extension: str = ".nii.gz",
    number_of_classes: Optional[int] = None,
) -> List[Tuple[int, Path]]:
    """
    Resolve the probability maps to write for a class count.

    Args:
        number_of_tissues: Number of tissue classes N.
        table: Mapping N -> ordered (class index, name) pairs.
        output_dir: Directory for the maps.
        extension: File extension appended to each name.
        number_of_classes: Classes actually fitted. Entries with an index at
            or beyond it are skipped.

    Returns:
        Ordered list of (class index, output path).
    """
    entries = table.get(number_of_tissues)
    if not entries:
        logger.info(f"No named probability maps for {number_of_tissues} classes")
        return []

    output_dir = Path(output_dir)
    outputs = []

    for index, name in entries:
        if number_of_classes is not None and index >= number_of_classes:
            logger.warning(
                f"Skipping probability map '{name}': class {index} not fitted "
                f"({number_of_classes} classes)"
            )
            continue
        outputs.append((index, output_dir / f"{name}{extension}"))

    return outputs

"""
Vector overlay types. The overlay is advisory: canonical records live in SQLite.
"""

from typing import Dict, Optional
import numpy as np
from dataclasses import dataclass, field


@dataclass
class VectorRecord:
    """Represents an analysis embedding with metadata."""

    id: str
    """Analysis record identifier"""

    vector: Optional[np.ndarray]
    """Image embedding, None when no vector was produced"""

    metadata: Dict[str, object] = field(default_factory=dict)
    """Additional metadata associated with the vector"""


@dataclass
class QueryResult:
    """Represents a search result from vector store."""

    id: str
    """Identifier for the matching record"""

    score: float
    """Cosine similarity of the match (-1 to 1)"""

    metadata: Dict[str, object] = field(default_factory=dict)
    """Metadata associated with the matched record"""

"""
Page embeddings with sentence-transformers.

The embedding model is optional. When it cannot be loaded, the caller gets an
AnalysisDegradation and ordering falls back to lexical similarity.
"""

import logging
from typing import Dict, Optional

from .corpus import PageCorpus
from .errors import AnalysisDegradation, EngineUnavailable

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


class SentenceTransformerEmbedder:
    """
    Computes one vector per page with text.

    Args:
        model_name: sentence-transformers model id or local path
        cache_dir: Directory for downloaded model files
        max_characters: Page text is truncated to this length before encoding
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        cache_dir: Optional[str] = None,
        max_characters: int = 4000,
        device: str = "cpu"
    ):
        self.model_name = model_name
        self.cache_dir = cache_dir
        self.max_characters = max_characters
        self.device = device
        self._model = None

    @property
    def model(self):
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError:
                raise EngineUnavailable(
                    "embed",
                    "sentence-transformers is not installed. "
                    "Install with: pip install sentence-transformers"
                )
            try:
                self._model = SentenceTransformer(
                    self.model_name, cache_folder=self.cache_dir, device=self.device
                )
            except Exception as e:
                raise EngineUnavailable("embed", f"Cannot load {self.model_name}: {e}")
            logger.info(f"Loaded embedding model {self.model_name}")
        return self._model

    def embed(self, corpus: PageCorpus) -> Dict[int, list]:
        """
        Embed every page that has text.

        Returns:
            Mapping of page index to vector; pages without text are absent
        """
        indices = [page.index for page in corpus if page.has_text]
        if not indices:
            return {}

        texts = [corpus[i].text[:self.max_characters] for i in indices]
        try:
            vectors = self.model.encode(texts, show_progress_bar=False)
        except AnalysisDegradation:
            raise
        except Exception as e:
            raise AnalysisDegradation("embed", f"Encoding failed: {e}")

        return {index: [float(v) for v in vector] for index, vector in zip(indices, vectors)}

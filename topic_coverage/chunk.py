"""
Content chunking module for splitting page bodies into bounded chunks.
"""
import re
from typing import List

from .core.models import ContentChunk
from .utils import logger

PARAGRAPH_BREAK = re.compile(r'\n\s*\n')
SENTENCE_BREAK = re.compile(r'[.!?]+')
SENTENCE_JOINER = '. '


class ContentChunker:
    """Chunks text into paragraph/sentence units of at most max_chunk_size characters.

    Chunks shorter than min_chunk_size characters are dropped as noise
    (stray headers, navigation fragments). Deterministic and never raises.
    """

    def __init__(self, max_chunk_size: int = 1000, min_chunk_size: int = 50):
        if max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be positive")
        self.max_chunk_size = max_chunk_size
        self.min_chunk_size = min_chunk_size

    def chunk(self, text: str) -> List[ContentChunk]:
        """Split text into ordered chunks."""
        texts = self.chunk_texts(text)
        return [ContentChunk(index=i, text=t) for i, t in enumerate(texts)]

    def chunk_texts(self, text: str) -> List[str]:
        """Split text into ordered chunk strings."""
        if not text or not text.strip():
            return []

        chunks: List[str] = []
        for paragraph in self._split_paragraphs(text):
            if len(paragraph) <= self.max_chunk_size:
                chunks.append(paragraph)
            else:
                chunks.extend(self._chunk_paragraph(paragraph))

        kept = [c for c in chunks if len(c) >= self.min_chunk_size]
        logger.debug(f"Chunked {len(text)} chars into {len(kept)} chunks "
                     f"({len(chunks) - len(kept)} dropped as too short)")
        return kept

    def _split_paragraphs(self, text: str) -> List[str]:
        """Split text into paragraphs."""
        paragraphs = PARAGRAPH_BREAK.split(text)
        return [p.strip() for p in paragraphs if p.strip()]

    def _split_sentences(self, text: str) -> List[str]:
        """Split text into sentences."""
        sentences = SENTENCE_BREAK.split(text)
        return [s.strip() for s in sentences if s.strip()]

    def _chunk_paragraph(self, paragraph: str) -> List[str]:
        """Greedily pack the sentences of an oversized paragraph."""
        chunks = []
        current_chunk = ""

        for sentence in self._split_sentences(paragraph):
            if len(sentence) > self.max_chunk_size:
                if current_chunk:
                    chunks.append(current_chunk.strip())
                    current_chunk = ""
                chunks.extend(self._chunk_large_segment(sentence))
                continue

            candidate = current_chunk + SENTENCE_JOINER + sentence if current_chunk else sentence
            if len(candidate) <= self.max_chunk_size:
                current_chunk = candidate
            else:
                chunks.append(current_chunk.strip())
                current_chunk = sentence

        if current_chunk.strip():
            chunks.append(current_chunk.strip())

        return chunks

    def _chunk_large_segment(self, segment: str) -> List[str]:
        """Handle a single sentence that is still too large by splitting on words."""
        chunks = []
        current_chunk = ""

        for word in segment.split():
            # A single word longer than the bound is cut into fixed-size slices
            while len(word) > self.max_chunk_size:
                if current_chunk:
                    chunks.append(current_chunk)
                    current_chunk = ""
                chunks.append(word[:self.max_chunk_size])
                word = word[self.max_chunk_size:]

            candidate = current_chunk + " " + word if current_chunk else word
            if len(candidate) <= self.max_chunk_size:
                current_chunk = candidate
            else:
                if current_chunk:
                    chunks.append(current_chunk)
                current_chunk = word

        if current_chunk:
            chunks.append(current_chunk)

        return chunks


def chunk_text(text: str, max_chunk_size: int = 1000) -> List[str]:
    """Convenience function to chunk text with default settings."""
    return ContentChunker(max_chunk_size=max_chunk_size).chunk_texts(text)

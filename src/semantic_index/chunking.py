"""Sentence-aware text chunking for semantic indexing.

Splits a page's title and content into bounded, overlapping chunks suitable for
embedding. Sentence segmentation understands both Latin and CJK punctuation.
All chunking is deterministic: same input + config → same chunks.

Strategies, in order of preference:
    - grouped: consecutive sentences packed up to max_words_per_chunk, with
      sentence-level overlap between neighbouring chunks
    - mixed: used when any sentence is longer than max_words_per_chunk; short
      sentences become their own chunk, long ones are cut into word windows
    - fallback: used when no sentence survives segmentation; paragraphs (or the
      whole content) are cut into fixed word windows
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Protocol

MIN_TITLE_LENGTH = 5
MIN_SENTENCE_LENGTH = 15
AGGRESSIVE_SPLIT_MIN_LENGTH = 500
AGGRESSIVE_SPLIT_MAX_SENTENCES = 3
HARD_SPLIT_OVERLAP_WORDS = 5
FALLBACK_WORDS_PER_CHUNK = 150

# Applied in order; each inserts a newline after a sentence terminator
_SENTENCE_BREAKS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"([。！？][”\"]?)\s*"), "\\1\n"),
    (re.compile(r"([.!?][\"'”]?)\s+(?=[A-Z])"), "\\1\n"),
    (re.compile(r"([.!?][\"'”]?)\s*$", re.MULTILINE), "\\1\n"),
)

_AGGRESSIVE_BREAKS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"([.!?。！？])"), "\\1\n"),
    (re.compile(r"([;；:：])"), "\\1\n"),
    (re.compile(r"([)）])\s*(?=[\u4e00-\u9fa5A-Z])"), "\\1\n"),
)

_BLANK_LINES = re.compile(r"\n\s*\n")


@dataclass(frozen=True)
class ChunkingConfig:
    """Configuration for text chunking.

    Attributes:
        max_words_per_chunk: Upper bound on whitespace-separated words per chunk
        overlap_sentences: Sentences shared between neighbouring grouped chunks
        min_chunk_length: Chunks must be longer than this many characters
        include_title: If True, emit the page title as the first chunk
    """

    max_words_per_chunk: int = 80
    overlap_sentences: int = 1
    min_chunk_length: int = 20
    include_title: bool = True

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.max_words_per_chunk <= 0:
            raise ValueError(
                f"max_words_per_chunk must be positive, got {self.max_words_per_chunk}"
            )
        if self.overlap_sentences < 0:
            raise ValueError(
                f"overlap_sentences must be non-negative, got {self.overlap_sentences}"
            )
        if self.min_chunk_length < 0:
            raise ValueError(f"min_chunk_length must be non-negative, got {self.min_chunk_length}")


@dataclass(frozen=True)
class Chunk:
    """A single text chunk tagged with the strategy that produced it.

    Attributes:
        text: Chunk text content
        source: Provenance tag (e.g. "title", "content_chunk_3",
            "long_sentence_chunk_2_part_1")
        index: Position of the chunk within one chunking call. Windows cut
            from the same oversized sentence share an index.
        word_count: Number of whitespace-separated words in text
    """

    text: str
    source: str
    index: int
    word_count: int

    def __post_init__(self) -> None:
        """Validate chunk properties."""
        if not self.text:
            raise ValueError("Chunk text cannot be empty")
        if not self.source:
            raise ValueError("Chunk source cannot be empty")
        if self.index < 0:
            raise ValueError(f"index must be non-negative, got {self.index}")
        if self.word_count <= 0:
            raise ValueError(f"word_count must be positive, got {self.word_count}")


class Chunker(Protocol):
    """Protocol for text chunking implementations."""

    def chunk(self, content: str, title: str = "") -> list[Chunk]:
        """Split a page into ordered chunks.

        Args:
            content: Page body text
            title: Optional page title

        Returns:
            List of Chunk objects in order
        """
        ...


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    return len(text.split())


def _word_windows(words: list[str], size: int, step: int) -> Iterator[tuple[int, list[str]]]:
    """Yield (window_number, words) for windows of `size` words every `step` words."""
    for number, start in enumerate(range(0, len(words), step)):
        yield number, words[start : start + size]
        if start + size >= len(words):
            break


class SentenceChunker:
    """Sentence-aware chunker for mixed Latin/CJK text."""

    def __init__(self, config: ChunkingConfig | None = None):
        """Initialize chunker with configuration.

        Args:
            config: Chunking configuration (defaults if None)
        """
        self.config = config or ChunkingConfig()

    def chunk(self, content: str, title: str = "") -> list[Chunk]:
        """Split a page into ordered chunks.

        Empty content is not an error: the result then holds at most the title
        chunk.

        Args:
            content: Page body text
            title: Optional page title

        Returns:
            List of Chunk objects in order
        """
        chunks: list[Chunk] = []

        clean_title = (title or "").strip()
        if self.config.include_title and len(clean_title) > MIN_TITLE_LENGTH:
            chunks.append(
                Chunk(
                    text=clean_title,
                    source="title",
                    index=0,
                    word_count=count_words(clean_title),
                )
            )

        clean_content = (content or "").strip()
        if not clean_content:
            return chunks

        sentences = self.split_sentences(clean_content)
        start_index = len(chunks)

        if not sentences:
            return chunks + self._fallback_chunks(clean_content, start_index)

        if any(count_words(s) > self.config.max_words_per_chunk for s in sentences):
            return chunks + self._mixed_chunks(sentences, start_index)

        return chunks + self._grouped_chunks(sentences, start_index)

    def split_sentences(self, content: str) -> list[str]:
        """Split content into sentences, switching to aggressive splitting for
        long text that yields too few sentences.

        Args:
            content: Trimmed input text

        Returns:
            Sentences longer than MIN_SENTENCE_LENGTH characters
        """
        processed = content
        for pattern, replacement in _SENTENCE_BREAKS:
            processed = pattern.sub(replacement, processed)
        processed = _BLANK_LINES.sub("\n", processed)

        sentences = [s.strip() for s in processed.split("\n")]
        sentences = [s for s in sentences if len(s) > MIN_SENTENCE_LENGTH]

        if (
            len(sentences) < AGGRESSIVE_SPLIT_MAX_SENTENCES
            and len(content) > AGGRESSIVE_SPLIT_MIN_LENGTH
        ):
            return self._aggressive_split(content)

        return sentences

    def _aggressive_split(self, content: str) -> list[str]:
        """Split paragraph-style text on clause punctuation as well.

        Sentences still longer than max_words_per_chunk are hard-split into word
        windows overlapping by HARD_SPLIT_OVERLAP_WORDS words.
        """
        processed = content
        for pattern, replacement in _AGGRESSIVE_BREAKS:
            processed = pattern.sub(replacement, processed)

        max_words = self.config.max_words_per_chunk
        step = max(1, max_words - HARD_SPLIT_OVERLAP_WORDS)

        sentences: list[str] = []
        for raw in processed.split("\n"):
            sentence = raw.strip()
            if len(sentence) <= MIN_SENTENCE_LENGTH:
                continue

            words = sentence.split()
            if len(words) <= max_words:
                sentences.append(sentence)
                continue

            for _, window in _word_windows(words, max_words, step):
                text = " ".join(window)
                if len(text) > MIN_SENTENCE_LENGTH:
                    sentences.append(text)

        return sentences

    def _grouped_chunks(self, sentences: list[str], start_index: int) -> list[Chunk]:
        """Pack consecutive sentences into chunks with sentence overlap."""
        max_words = self.config.max_words_per_chunk
        chunks: list[Chunk] = []
        index = start_index
        cursor = 0

        while cursor < len(sentences):
            parts: list[str] = []
            word_total = 0
            used = 0

            while cursor + used < len(sentences) and word_total < max_words:
                sentence = sentences[cursor + used]
                sentence_words = count_words(sentence)
                # Never split a sentence; stop once the next one would overflow
                if word_total + sentence_words > max_words and word_total > 0:
                    break
                parts.append(sentence)
                word_total += sentence_words
                used += 1

            text = " ".join(parts).strip()
            if len(text) > self.config.min_chunk_length:
                chunks.append(
                    Chunk(
                        text=text,
                        source=f"content_chunk_{index}",
                        index=index,
                        word_count=count_words(text),
                    )
                )
                index += 1

            if cursor + used >= len(sentences):
                break
            cursor += max(1, used - self.config.overlap_sentences)

        return chunks

    def _mixed_chunks(self, sentences: list[str], start_index: int) -> list[Chunk]:
        """One chunk per normal sentence; oversized sentences cut into windows."""
        max_words = self.config.max_words_per_chunk
        chunks: list[Chunk] = []
        index = start_index

        for sentence in sentences:
            words = sentence.split()

            if len(words) <= max_words:
                chunks.append(
                    Chunk(
                        text=sentence,
                        source=f"sentence_chunk_{index}",
                        index=index,
                        word_count=len(words),
                    )
                )
                index += 1
                continue

            emitted = False
            for part, window in _word_windows(words, max_words, max_words):
                text = " ".join(window)
                if len(text) > self.config.min_chunk_length:
                    chunks.append(
                        Chunk(
                            text=text,
                            source=f"long_sentence_chunk_{index}_part_{part}",
                            index=index,
                            word_count=len(window),
                        )
                    )
                    emitted = True
            if emitted:
                index += 1

        return chunks

    def _fallback_chunks(self, content: str, start_index: int) -> list[Chunk]:
        """Fixed word windows over paragraphs, or over the whole content."""
        min_length = self.config.min_chunk_length
        chunks: list[Chunk] = []
        index = start_index

        paragraphs = [p.strip() for p in _BLANK_LINES.split(content)]
        paragraphs = [p for p in paragraphs if len(p) > min_length]

        if len(paragraphs) > 1:
            sections = [
                (f"paragraph_{p}_chunk_", paragraph) for p, paragraph in enumerate(paragraphs)
            ]
        else:
            sections = [("content_chunk_", content)]

        for prefix, section in sections:
            words = section.split()
            for number, window in _word_windows(
                words, FALLBACK_WORDS_PER_CHUNK, FALLBACK_WORDS_PER_CHUNK
            ):
                text = " ".join(window)
                if len(text) > min_length:
                    chunks.append(
                        Chunk(
                            text=text,
                            source=f"{prefix}{number}",
                            index=index,
                            word_count=len(window),
                        )
                    )
                    index += 1

        return chunks


def chunk_text(
    content: str,
    title: str = "",
    max_words_per_chunk: int = 80,
    overlap_sentences: int = 1,
    min_chunk_length: int = 20,
    include_title: bool = True,
) -> list[Chunk]:
    """Convenience function to chunk text with an ad-hoc config.

    Example:
        >>> chunks = chunk_text("This is sentence one. This is sentence two.")
        >>> [c.source for c in chunks]
        ['content_chunk_0']
    """
    config = ChunkingConfig(
        max_words_per_chunk=max_words_per_chunk,
        overlap_sentences=overlap_sentences,
        min_chunk_length=min_chunk_length,
        include_title=include_title,
    )
    return SentenceChunker(config).chunk(content, title)

"""
Unit Tests — Derived-Text Publisher, Summarizer, Embedding & Index
══════════════════════════════════════════════════════════════════
Coverage:
  ✅ derived_text_key: basename, last extension stripped, text/ prefix,
     _transcript suffix for audio/video
  ✅ publish writes UTF-8 text/plain; store failure → PersistError
  ✅ Summarizer: generator reply, placeholder on error / empty reply / empty text
  ✅ clean_text collapses whitespace
  ✅ embed: [m, m/2, m/3], deterministic, empty → zeros, UTF-16 code units
  ✅ IndexStage upserts one record keyed by document id
"""

from __future__ import annotations

import pytest

from learninglab.core.exceptions import GenerationUnavailable, PersistError
from learninglab.processing.embeddings import IndexStage, clean_text, embed
from learninglab.processing.publisher import DerivedTextPublisher, derived_text_key
from learninglab.processing.summarizer import Summarizer, placeholder_summary

DOC_ID = "0b5e0d9c-8a8e-4a55-9d53-0f4a1bb8e0a1"


# ─────────────────────────────────────────────────────────────────────────────
# Derived-text publisher
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestDerivedTextKey:

    def test_document_key(self):
        assert derived_text_key(f"docs/{DOC_ID}_report.pdf") == f"text/{DOC_ID}_report.txt"

    def test_transcript_key(self):
        assert (
            derived_text_key(f"docs/{DOC_ID}_lecture.mp4", transcript=True)
            == f"text/{DOC_ID}_lecture_transcript.txt"
        )

    def test_only_last_extension_is_stripped(self):
        assert derived_text_key("docs/x_archive.tar.gz") == "text/x_archive.tar.txt"

    def test_key_without_extension(self):
        assert derived_text_key("docs/x_README") == "text/x_README.txt"

    def test_custom_prefix(self):
        assert derived_text_key("docs/x_a.pdf", prefix="derived/") == "derived/x_a.txt"


@pytest.mark.unit
class TestDerivedTextPublisher:

    async def test_publish_writes_utf8_text(self, store):
        publisher = DerivedTextPublisher(store)

        key = await publisher.publish(f"docs/{DOC_ID}_notes.docx", "naïve text")

        assert key == f"text/{DOC_ID}_notes.txt"
        assert store.objects[key] == "naïve text".encode("utf-8")
        assert store.content_types[key].startswith("text/plain")

    async def test_store_failure_is_persist_error(self, store):
        store.fail_put = ConnectionError("s3 down")

        with pytest.raises(PersistError):
            await DerivedTextPublisher(store).publish("docs/x_a.pdf", "text")


# ─────────────────────────────────────────────────────────────────────────────
# Summarizer
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestSummarizer:

    async def test_returns_generated_summary(self, generator):
        generator.reply = "  Two sentences about cells.  "

        summary = await Summarizer(generator).summarize("Cells are the unit of life.")

        assert summary == "Two sentences about cells."
        assert generator.calls[0][1] == "Cells are the unit of life."

    async def test_generator_error_gives_placeholder(self, generator):
        generator.error = GenerationUnavailable("no backend")
        text = "x" * 80

        summary = await Summarizer(generator).summarize(text)

        assert summary == f"Summary placeholder for text: {'x' * 50}..."

    async def test_empty_reply_gives_placeholder(self, generator):
        generator.reply = "   "

        summary = await Summarizer(generator).summarize("Some text")

        assert summary == "Summary placeholder for text: Some text..."

    async def test_blank_text_skips_generator(self, generator):
        summary = await Summarizer(generator).summarize("")

        assert summary == "Summary placeholder for text: ..."
        assert generator.calls == []

    def test_placeholder_preview_length(self):
        assert placeholder_summary("abcdef", preview_chars=3) == "Summary placeholder for text: abc..."


# ─────────────────────────────────────────────────────────────────────────────
# Embedding
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestEmbedding:

    def test_clean_text_collapses_whitespace(self):
        assert clean_text("  Hello \n\n\tWorld  ") == "Hello World"

    def test_empty_text_embeds_to_zeros(self):
        assert embed("") == [0.0, 0.0, 0.0]

    def test_mean_code_unit(self):
        # "AC" → codes 65, 67 → mean 66
        assert embed("AC") == [66.0, 33.0, 22.0]

    def test_deterministic(self):
        assert embed("Hello World") == embed("Hello World")

    def test_astral_characters_count_as_surrogate_pairs(self):
        # U+1F600 → 0xD83D, 0xDE00
        mean = (0xD83D + 0xDE00) / 2
        assert embed("\U0001F600") == [mean, mean / 2, mean / 3]

    def test_always_three_dimensions(self):
        assert len(embed("a much longer piece of text " * 50)) == 3


@pytest.mark.unit
class TestIndexStage:

    async def test_index_upserts_one_record(self, vectors):
        await IndexStage(vectors).index(DOC_ID, [1.0, 0.5, 0.33], "hello", "Notes")
        await IndexStage(vectors).index(DOC_ID, [2.0, 1.0, 0.66], "hello again", "Notes")

        assert await vectors.count() == 1
        record = vectors.get(DOC_ID)
        assert record.vector == [2.0, 1.0, 0.66]
        assert record.metadata == {"text": "hello again", "name": "Notes"}

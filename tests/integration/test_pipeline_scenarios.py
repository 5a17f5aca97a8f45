"""End-to-end pipeline runs against a scripted completion client."""

from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator

import pytest
from pydantic import BaseModel

from records_recon.core.config import AppSettings, ExtractionConfig, LLMConfig
from records_recon.events import (
    CompleteEvent,
    ErrorEvent,
    FileReadyEvent,
    KeywordFlagEvent,
    ProgressEvent,
    ScanCacheEvent,
)
from records_recon.exceptions import LLMTimeoutError
from records_recon.models import DocumentPayload, FinalReport, InterimReport, RetryRequest
from records_recon.pipeline.driver import FILE_SEPARATOR, ReconPipeline
from records_recon.pipeline.parsing import keyword_flags_to_items
from records_recon.reconcile import deduplicate_items
from records_recon.report import IMAGE_ONLY_NOTE, LOCAL_STRUCTURING_NOTE, NO_SIGNAL_NOTE
from tests.fakes.documents import CLINICAL_TEXT, NO_SIGNAL_TEXT, make_document, text_decoder
from tests.fakes.fake_llm import FakeStreamingClient

LLM = LLMConfig()

TINNITUS_ITEM = json.dumps(
    [
        {
            "condition": "Bilateral tinnitus",
            "excerpt": "Bilateral tinnitus, constant ringing in both ears since deployment.",
            "page": 1,
            "sectionFound": "Assessment",
            "date": "2024-02-06",
            "doctorName": "Smith, John m",
            "category": "Hearing",
            "confidence": "high",
        }
    ]
)

SERVICE_SUMMARY = json.dumps(
    {
        "document_summary": {"total_pages_referenced": 1},
        "timeline": [{"date": "2024-02-06", "page": 1, "entry": "Bilateral tinnitus", "category": "Hearing"}],
        "conditions_index": [
            {"condition": "Bilateral tinnitus", "category": "Hearing", "mention_count": 1, "pages_found": [1]}
        ],
        "keyword_frequency": [{"term": "tinnitus", "count": 1}],
    }
)


async def _collect(events: AsyncIterator[BaseModel]) -> list[BaseModel]:
    return [event async for event in events]


def _pipeline(settings: AppSettings, client: FakeStreamingClient) -> ReconPipeline:
    return ReconPipeline(settings, client=client, decoder=text_decoder)


def _terminal(events: list[BaseModel]) -> BaseModel:
    terminals = [e for e in events if isinstance(e, (CompleteEvent, ErrorEvent))]
    assert len(terminals) == 1
    assert events[-1] is terminals[0]
    return terminals[0]


class TestScan:
    @pytest.mark.asyncio
    async def test_single_line_assessment_reaches_extraction(self, settings: AppSettings) -> None:
        client = FakeStreamingClient(script={LLM.extract_model: [TINNITUS_ITEM]})
        doc = make_document("<<<PAGE 1>>>\nAssessment: 1. Bilateral tinnitus")
        events = await _collect(_pipeline(settings, client).run([doc]))

        report = _terminal(events).report
        assert isinstance(report, FinalReport)
        assert not report.no_extractable_text
        assert len(client.calls_for(LLM.extract_model)) == 1
        assert "Bilateral tinnitus" in client.calls[0]["prompt"]
        assert len(report.extracted_items) == 1
        item = report.extracted_items[0]
        assert (item.category, item.confidence) == ("Hearing", "high")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "output",
        [
            '{"document_summary": "n/a"}',
            '{"conditions_index": [{"condition": "Tinnitus", "pages_found": 3}]}',
            '{"document_summary": {"total_pages_referenced": 1e999}}',
        ],
    )
    async def test_oddly_shaped_structuring_still_completes(self, settings: AppSettings, output: str) -> None:
        client = FakeStreamingClient(script={LLM.extract_model: [TINNITUS_ITEM], LLM.structure_model: [output]})
        events = await _collect(_pipeline(settings, client).run([make_document(CLINICAL_TEXT)]))

        done = _terminal(events)
        assert isinstance(done, CompleteEvent)
        assert len(done.report.extracted_items) == 1

    @pytest.mark.asyncio
    async def test_single_condition_with_service_structuring(self, settings: AppSettings) -> None:
        client = FakeStreamingClient(
            script={LLM.extract_model: [TINNITUS_ITEM], LLM.structure_model: [SERVICE_SUMMARY]}
        )
        events = await _collect(_pipeline(settings, client).run([make_document(CLINICAL_TEXT)]))

        done = _terminal(events)
        assert isinstance(done, CompleteEvent)
        report = done.report
        assert isinstance(report, FinalReport)
        assert len(report.extracted_items) == 1
        item = report.extracted_items[0]
        assert item.category == "Hearing"
        assert item.confidence == "high"
        assert item.page_number == 1
        assert report.processing_details.structuring_source == "service"
        assert report.conditions_index[0].condition == "Bilateral tinnitus"
        assert [s.stage for s in report.processing_details.stages] == ["filter", "extract", "structure"]
        assert report.scan_synopsis is not None
        assert report.scan_synopsis.total_pages == 3

    @pytest.mark.asyncio
    async def test_event_order_and_progress(self, settings: AppSettings) -> None:
        client = FakeStreamingClient(script={LLM.extract_model: [TINNITUS_ITEM]})
        events = await _collect(_pipeline(settings, client).run([make_document(CLINICAL_TEXT)]))

        first = events[0]
        assert isinstance(first, ProgressEvent)
        assert (first.percent, first.phase) == (5, "upload")
        kinds = [e.type for e in events]
        assert kinds.index("file_ready") < kinds.index("keyword_flag") < kinds.index("scan_cache")
        assert kinds.index("scan_cache") < kinds.index("complete")

        percents = [e.percent for e in events if isinstance(e, ProgressEvent)]
        assert percents == sorted(percents)
        assert percents[-1] == 95

        flags = {e.condition for e in events if isinstance(e, KeywordFlagEvent)}
        assert flags == {"Back pain", "Ptsd", "Tinnitus"}

    @pytest.mark.asyncio
    async def test_unparseable_structuring_falls_back_locally(self, settings: AppSettings) -> None:
        client = FakeStreamingClient(
            script={LLM.extract_model: [TINNITUS_ITEM], LLM.structure_model: ["not json at all"]}
        )
        events = await _collect(_pipeline(settings, client).run([make_document(CLINICAL_TEXT)]))

        report = _terminal(events).report
        assert report.processing_details.structuring_source == "local"
        assert report.note == LOCAL_STRUCTURING_NOTE
        assert report.conditions_index[0].mention_count == 1
        assert client.calls_for(LLM.fallback_model) == []

    @pytest.mark.asyncio
    async def test_no_signal_skips_extraction(self, settings: AppSettings) -> None:
        client = FakeStreamingClient()
        events = await _collect(_pipeline(settings, client).run([make_document(NO_SIGNAL_TEXT)]))

        report = _terminal(events).report
        assert isinstance(report, FinalReport)
        assert report.extracted_items == []
        assert report.no_extractable_text
        assert report.note == NO_SIGNAL_NOTE
        assert client.calls == []
        assert not any(isinstance(e, ScanCacheEvent) for e in events)

    @pytest.mark.asyncio
    async def test_non_pdf_upload_contributes_no_text(self, settings: AppSettings) -> None:
        client = FakeStreamingClient()
        doc = make_document(CLINICAL_TEXT, name="notes.txt", media_type="text/plain")
        events = await _collect(_pipeline(settings, client).run([doc]))

        ready = next(e for e in events if isinstance(e, FileReadyEvent))
        assert ready.page_count == 0
        assert _terminal(events).report.note == IMAGE_ONLY_NOTE
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_all_chunks_timing_out_yields_interim_from_flags(self, settings: AppSettings) -> None:
        client = FakeStreamingClient(default=LLMTimeoutError("Extraction chunk 1/1", 5.0))
        events = await _collect(_pipeline(settings, client).run([make_document(CLINICAL_TEXT)]))

        cache = next(e for e in events if isinstance(e, ScanCacheEvent))
        report = _terminal(events).report
        assert isinstance(report, InterimReport)
        assert report.reason == "extraction_failed"
        assert report.extracted_items == deduplicate_items(keyword_flags_to_items(cache.keyword_flags))
        assert all(c["model"] == LLM.extract_model for c in client.calls)

    @pytest.mark.asyncio
    async def test_empty_extraction_with_flags_yields_interim(self, settings: AppSettings) -> None:
        client = FakeStreamingClient(script={LLM.extract_model: ["[]"]})
        events = await _collect(_pipeline(settings, client).run([make_document(CLINICAL_TEXT)]))

        report = _terminal(events).report
        assert isinstance(report, InterimReport)
        assert report.reason == "extraction_empty"

    @pytest.mark.asyncio
    async def test_multiple_files_join_corpora_and_dedupe_flags(self, settings: AppSettings) -> None:
        client = FakeStreamingClient(script={LLM.extract_model: [TINNITUS_ITEM, TINNITUS_ITEM]})
        docs = [make_document(CLINICAL_TEXT, name="a.pdf"), make_document(CLINICAL_TEXT, name="b.pdf")]
        events = await _collect(_pipeline(settings, client).run(docs))

        cache = next(e for e in events if isinstance(e, ScanCacheEvent))
        assert cache.file_names == "a.pdf, b.pdf"
        assert FILE_SEPARATOR in cache.corpus
        assert len(cache.keyword_flags) == 3
        assert sum(isinstance(e, FileReadyEvent) for e in events) == 2
        report = _terminal(events).report
        assert report.processing_details.files_processed == 2
        assert len(report.extracted_items) == 1


class TestScanErrors:
    @pytest.mark.asyncio
    async def test_no_files(self, settings: AppSettings) -> None:
        events = await _collect(_pipeline(settings, FakeStreamingClient()).run([]))
        assert len(events) == 1
        error = events[0]
        assert isinstance(error, ErrorEvent)
        assert error.message == "No files provided."
        assert error.phase == "upload"

    @pytest.mark.asyncio
    async def test_oversized_file(self) -> None:
        settings = AppSettings(llm=LLMConfig(api_key="k"), extraction=ExtractionConfig(max_file_bytes=10))
        events = await _collect(_pipeline(settings, FakeStreamingClient()).run([make_document(CLINICAL_TEXT)]))
        error = _terminal(events)
        assert isinstance(error, ErrorEvent)
        assert "exceeds" in error.message
        assert error.phase == "upload"

    @pytest.mark.asyncio
    async def test_bad_base64(self, settings: AppSettings) -> None:
        doc = DocumentPayload(name="x.pdf", data="abc", size=3)
        events = await _collect(_pipeline(settings, FakeStreamingClient()).run([doc]))
        error = _terminal(events)
        assert isinstance(error, ErrorEvent)
        assert error.phase == "filtering"
        assert doc.data == ""

    @pytest.mark.asyncio
    async def test_unexpected_failure_becomes_generic_error(self, settings: AppSettings) -> None:
        def broken_decoder(raw: bytes) -> tuple[str, int]:
            raise RuntimeError("decoder exploded")

        pipeline = ReconPipeline(settings, client=FakeStreamingClient(), decoder=broken_decoder)
        error = _terminal(await _collect(pipeline.run([make_document(CLINICAL_TEXT)])))
        assert isinstance(error, ErrorEvent)
        assert "decoder exploded" not in error.message
        assert error.phase == "filtering"


class TestRetry:
    @pytest.mark.asyncio
    async def test_retry_uses_cached_corpus_only(self, settings: AppSettings) -> None:
        client = FakeStreamingClient(script={LLM.extract_model: [TINNITUS_ITEM]})
        request = RetryRequest(corpus="[Page 1] Bilateral tinnitus noted.", file_names="a.pdf, b.pdf")
        events = await _collect(_pipeline(settings, client).retry(request))

        assert not any(isinstance(e, (FileReadyEvent, ScanCacheEvent, KeywordFlagEvent)) for e in events)
        first = events[0]
        assert isinstance(first, ProgressEvent) and first.phase == "retry"
        report = _terminal(events).report
        assert isinstance(report, FinalReport)
        assert report.processing_details.files_processed == 2
        assert "[Page 1] Bilateral tinnitus noted." in client.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_reduced_cap_truncates_corpus(self) -> None:
        settings = AppSettings(llm=LLMConfig(api_key="k"), extraction=ExtractionConfig(retry_char_cap=100))
        client = FakeStreamingClient(script={LLM.extract_model: [TINNITUS_ITEM]})
        request = RetryRequest(corpus="A" * 150 + "TAIL", use_reduced_cap=True)
        await _collect(_pipeline(settings, client).retry(request))

        prompt = client.calls[0]["prompt"]
        assert "A" * 100 in prompt
        assert "A" * 101 not in prompt
        assert "TAIL" not in prompt

    @pytest.mark.asyncio
    async def test_empty_corpus_is_rejected(self, settings: AppSettings) -> None:
        events = await _collect(_pipeline(settings, FakeStreamingClient()).retry(RetryRequest(corpus="  ")))
        error = _terminal(events)
        assert isinstance(error, ErrorEvent)
        assert error.phase == "retry"


class TestCancellation:
    @pytest.mark.asyncio
    async def test_closing_the_stream_cancels_in_flight_calls(self, settings: AppSettings) -> None:
        client = FakeStreamingClient(default=TINNITUS_ITEM, delay=5.0)
        events = _pipeline(settings, client).run([make_document(CLINICAL_TEXT)])

        async for event in events:
            if isinstance(event, ProgressEvent) and event.phase == "extraction":
                break
        await asyncio.sleep(0.05)
        await events.aclose()  # type: ignore[attr-defined]

        assert len(client.calls) == 1
        assert client.cancelled == 1

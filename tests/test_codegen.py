"""Tests for the codegen module: template rendering and file output."""

import os
from pathlib import Path

import pytest

from typegen.codegen import render_client, render_types, write_module, write_text_atomic
from typegen.config import GeneratorConfig, RequestConfig
from typegen.context_builder import build_context, build_module

from helpers import petstore_spec


@pytest.fixture(scope="module")
def pets_module():
    return build_module(petstore_spec(), "Pets", "pets", "Api")


def _request_config(tmp_path):
    return RequestConfig(
        import_path="@/utils/request",
        services_path=tmp_path / "services",
        types_path="@/types",
        base_url="",
    )


class TestRenderTypes:

    def test_header(self, pets_module):
        text = render_types(build_context(pets_module))
        assert text.startswith(
            "/* eslint-disable */\n"
            "// Generated Types for pets\n"
            "// DO NOT EDIT - This file is automatically generated\n"
        )

    def test_declarations_present(self, pets_module):
        text = render_types(build_context(pets_module))
        assert text.count("export interface Pet {") == 1
        assert "export type ApiGetPetsResponse = Pet[];" in text
        assert "export interface ApiGetPetsPetIdRequest {\n  petId: string;\n}" in text
        assert "export interface ApiDeletePetsPetIdResponse {}" in text

    def test_pet_before_operations(self, pets_module):
        text = render_types(build_context(pets_module))
        assert text.index("export interface Pet {") < text.index("ApiGetPetsRequest")

    def test_ends_with_single_newline(self, pets_module):
        text = render_types(build_context(pets_module))
        assert text.endswith("}\n") or text.endswith(";\n")
        assert not text.endswith("\n\n")

    def test_stable(self, pets_module):
        ctx = build_context(pets_module)
        assert render_types(ctx) == render_types(ctx)


class TestRenderClient:
    """Test the generated axios client source."""

    @pytest.fixture
    def text(self, pets_module, tmp_path):
        return render_client(build_context(pets_module, _request_config(tmp_path)))

    def test_imports(self, text):
        assert 'import type { AxiosRequestConfig, AxiosResponse } from "axios";' in text
        assert 'import { GET, POST, PUT, DELETE } from "@/utils/request";' in text
        assert '} from "@/types/pets.d";' in text

    def test_only_used_helper(self, text):
        assert "const toFormData" in text
        assert "const toUrlEncoded" not in text

    def test_function_signature(self, text):
        assert (
            "export const getPetsPetId = ({\n"
            "  params: { petId },\n"
            "  config,\n"
            "}: {\n"
            "  params: ApiGetPetsPetIdRequest;\n"
            "  config?: AxiosRequestConfig<ApiGetPetsPetIdRequest>;\n"
            "}) => {\n"
            "  return GET<ApiGetPetsPetIdRequest, AxiosResponse<ApiGetPetsPetIdResponse>>({\n"
            "    url: `/pets/${petId}`,\n"
            "    ...config,\n"
            "  });\n"
            "};"
        ) in text

    def test_query_call(self, text):
        assert "    url: `/pets`,\n    params: params,\n    ...config," in text

    def test_multipart_call(self, text):
        assert "    params: { overwrite },\n    data: toFormData(data),\n" in text

    def test_doc_comment(self, text):
        assert " * Info for a specific pet\n * @tag [Pets](/pets/{petId})\n * @request `GET /pets/{petId}`" in text


class TestWriteTextAtomic:

    def test_writes_and_creates_parents(self, tmp_path):
        target = tmp_path / "a" / "b" / "out.d.ts"
        write_text_atomic(target, "hello\n")
        assert target.read_text(encoding="utf-8") == "hello\n"

    def test_replaces_existing(self, tmp_path):
        target = tmp_path / "out.d.ts"
        target.write_text("old", encoding="utf-8")
        write_text_atomic(target, "new")
        assert target.read_text(encoding="utf-8") == "new"

    def test_no_temp_files_left(self, tmp_path):
        write_text_atomic(tmp_path / "out.d.ts", "x")
        assert os.listdir(tmp_path) == ["out.d.ts"]

    def test_failed_replace_keeps_original(self, tmp_path, monkeypatch):
        target = tmp_path / "out.d.ts"
        target.write_text("old", encoding="utf-8")

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", broken_replace)
        with pytest.raises(OSError):
            write_text_atomic(target, "new")
        assert target.read_text(encoding="utf-8") == "old"
        assert os.listdir(tmp_path) == ["out.d.ts"]


class TestWriteModule:

    def test_types_only(self, pets_module, tmp_path):
        config = GeneratorConfig(url="x", output_dir=tmp_path / "types")
        written = write_module(pets_module, config)
        assert written == [tmp_path / "types" / "pets.d.ts"]
        assert written[0].is_file()

    def test_types_and_client(self, pets_module, tmp_path):
        config = GeneratorConfig(
            url="x",
            output_dir=tmp_path / "types",
            request_config=_request_config(tmp_path),
        )
        written = write_module(pets_module, config)
        assert written == [tmp_path / "types" / "pets.d.ts", tmp_path / "services" / "pets.ts"]
        assert all(isinstance(p, Path) and p.is_file() for p in written)

    def test_rerun_is_byte_identical(self, pets_module, tmp_path):
        config = GeneratorConfig(url="x", output_dir=tmp_path)
        path = write_module(pets_module, config)[0]
        first = path.read_bytes()
        write_module(build_module(petstore_spec(), "Pets", "pets", "Api"), config)
        assert path.read_bytes() == first

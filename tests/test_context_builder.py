"""Tests for the context_builder module."""

import logging
from pathlib import Path

import pytest

from typegen.config import RequestConfig
from typegen.context_builder import build_client_call, build_context, build_module
from typegen.errors import ModuleError

from helpers import make_spec, petstore_spec

REQUEST_CONFIG = RequestConfig(
    import_path="@/utils/request",
    services_path=Path("services"),
    types_path="@/types/",
    base_url="",
)


class TestPetsModule:
    """Test the full module pipeline with the sample spec."""

    @classmethod
    def setup_class(cls):
        cls.spec = petstore_spec()
        cls.module = build_module(cls.spec, "Pets", "pets", "Api")
        cls.ctx = build_context(cls.module, REQUEST_CONFIG)
        cls.ops = {op["function_name"]: op for op in cls.ctx["operations"]}

    def test_operation_order(self):
        assert [op["function_name"] for op in self.ctx["operations"]] == [
            "getPets",
            "postPets",
            "getPetsPetId",
            "putPetsPetId",
            "deletePetsPetId",
            "postPetsPetIdPhoto",
        ]

    def test_operation_count(self):
        assert self.ctx["operation_count"] == 6

    def test_pet_declared_once(self):
        """Pet is referenced by two operations but declared a single time."""
        pet_declarations = [d for d in self.ctx["declarations"] if "export interface Pet {" in d]
        assert len(pet_declarations) == 1

    def test_named_types_first(self):
        assert [t.name for t in self.module.named_types] == ["Pet"]
        assert "export interface Pet {" in self.ctx["declarations"][0]

    def test_declaration_names_unique(self):
        names = [t.name for t in self.module.declarations]
        assert len(names) == len(set(names))

    def test_type_imports_sorted(self):
        imports = self.ctx["type_imports"]
        assert imports == sorted(imports)
        assert "ApiGetPetsRequest" in imports
        assert "Pet" not in imports

    def test_verbs_in_fixed_order(self):
        assert self.ctx["verbs"] == ["GET", "POST", "PUT", "DELETE"]

    def test_helpers(self):
        assert self.ctx["helpers"] == ["toFormData"]

    def test_types_import_path(self):
        assert self.ctx["types_import"] == "@/types/pets.d"

    def test_query_only_call(self):
        op = self.ops["getPets"]
        assert op["destructure"] is None
        assert op["url"] == "/pets"
        assert op["query_expr"] == "params"
        assert op["data_expr"] is None

    def test_json_body_call(self):
        op = self.ops["postPets"]
        assert op["destructure"] is None
        assert op["data_expr"] == "params"

    def test_path_param_call(self):
        op = self.ops["getPetsPetId"]
        assert op["destructure"] == "{ petId }"
        assert op["url"] == "/pets/${petId}"
        assert op["query_expr"] is None
        assert op["data_expr"] is None

    def test_path_param_with_body(self):
        op = self.ops["putPetsPetId"]
        assert op["destructure"] == "{ petId, ...data }"
        assert op["data_expr"] == "data"

    def test_multipart_call(self):
        op = self.ops["postPetsPetIdPhoto"]
        assert op["destructure"] == "{ petId, overwrite, ...data }"
        assert op["query_expr"] == "{ overwrite }"
        assert op["data_expr"] == "toFormData(data)"

    def test_doc_fields(self):
        op = self.ops["getPetsPetId"]
        assert op["summary"] == "Info for a specific pet"
        assert op["tag"] == "Pets"
        assert op["verb"] == "GET"


class TestStoreModule:

    @classmethod
    def setup_class(cls):
        cls.module = build_module(petstore_spec(), "商店", "store", "Api")
        cls.ctx = build_context(cls.module, REQUEST_CONFIG)
        cls.ops = {op["function_name"]: op for op in cls.ctx["operations"]}

    def test_recursive_schema_declared(self):
        assert [t.name for t in self.module.named_types] == ["TreeNode"]
        tree = self.module.named_types[0]
        assert "children?: TreeNode[];" in tree.body
        assert "parent?: TreeNode;" in tree.body

    def test_helpers(self):
        assert self.ctx["helpers"] == ["toUrlEncoded"]

    def test_forced_urlencoded_call(self):
        op = self.ops["postStoreOrders"]
        assert op["data_expr"] == "toUrlEncoded(params)"
        assert op["query_expr"] is None

    def test_verbs(self):
        assert self.ctx["verbs"] == ["GET", "POST"]


class TestBuildModule:

    def test_tag_without_operations(self):
        with pytest.raises(ModuleError) as exc_info:
            build_module(petstore_spec(), "Empty", "empty", "Api")
        assert exc_info.value.tag == "Empty"

    def test_unknown_tag(self):
        with pytest.raises(ModuleError):
            build_module(petstore_spec(), "Nope", "nope", "Api")

    def test_modules_are_independent(self):
        spec = petstore_spec()
        pets = build_module(spec, "Pets", "pets", "Api")
        store = build_module(spec, "商店", "store", "Api")
        assert "TreeNode" not in [t.name for t in pets.named_types]
        assert "Pet" not in [t.name for t in store.named_types]

    def test_idempotent(self):
        first = build_context(build_module(petstore_spec(), "Pets", "pets", "Api"), REQUEST_CONFIG)
        second = build_context(build_module(petstore_spec(), "Pets", "pets", "Api"), REQUEST_CONFIG)
        assert first == second

    def test_multi_tag_operation_in_both_modules(self):
        spec = make_spec({"/x": {"get": {"tags": ["a", "b"], "responses": {}}}})
        assert len(build_module(spec, "a", "a", "Api").operations) == 1
        assert len(build_module(spec, "b", "b", "Api").operations) == 1


class TestNameCollisions:
    """Test that clashing declaration names never overwrite each other."""

    def test_identical_shape_reused(self):
        spec = make_spec({
            "/a-b": {"get": {"tags": ["t"], "responses": {}}},
            "/a_b": {"get": {"tags": ["t"], "responses": {}}},
        })
        module = build_module(spec, "t", "t", "Api")
        first, second = module.operations
        assert first.request.name == second.request.name == "ApiGetABRequest"
        assert [op.function_name for op in module.operations] == ["getAB", "getAB2"]
        assert [t.name for t in module.declarations].count("ApiGetABRequest") == 1

    def test_function_suffix_skips_existing_name(self):
        spec = make_spec({
            "/a": {"get": {"tags": ["t"], "responses": {}}},
            "/A": {"get": {"tags": ["t"], "responses": {}}},
            "/a2": {"get": {"tags": ["t"], "responses": {}}},
        })
        module = build_module(spec, "t", "t", "Api")
        names = [op.function_name for op in module.operations]
        assert names == ["getA", "getA3", "getA2"]

    def test_different_shape_suffixed(self, caplog):
        def returning(schema):
            return {"get": {"tags": ["t"], "responses": {"200": {
                "description": "ok",
                "content": {"application/json": {"schema": schema}},
            }}}}

        spec = make_spec({
            "/a-b": returning({"type": "string"}),
            "/a_b": returning({"type": "integer"}),
        })
        with caplog.at_level(logging.WARNING):
            module = build_module(spec, "t", "t", "Api")
        first, second = module.operations
        assert first.response.name == "ApiGetABResponse"
        assert second.response.name == "ApiGetABResponse2"
        assert second.response.body == "number"
        assert "already declared" in caplog.text

    def test_schema_name_wins_over_operation_type(self):
        spec = make_spec(
            {"/things": {"get": {"tags": ["t"], "responses": {"200": {
                "description": "ok",
                "content": {"application/json": {"schema": {
                    "type": "array",
                    "items": {"$ref": "#/components/schemas/ApiGetThingsResponse"},
                }}},
            }}}}},
            schemas={"ApiGetThingsResponse": {"type": "object", "properties": {"id": {"type": "integer"}}}},
        )
        module = build_module(spec, "t", "t", "Api")
        assert [t.name for t in module.named_types] == ["ApiGetThingsResponse"]
        response = module.operations[0].response
        assert response.name == "ApiGetThingsResponse2"
        assert response.body == "ApiGetThingsResponse[]"


class TestClientCall:

    def _compiled(self, path, method="get", parameters=None, body=None):
        details = {"tags": ["t"], "responses": {}, "parameters": parameters or []}
        if body is not None:
            details["requestBody"] = {"content": {"application/json": {"schema": body}}}
        module = build_module(make_spec({path: {method: details}}), "t", "t", "Api")
        return module.operations[0]

    def test_reserved_word_param(self):
        op = self._compiled("/x/{default}")
        call = build_client_call(op)
        assert call["destructure"] == '{ "default": defaultParam }'
        assert call["url"] == "/x/${defaultParam}"

    def test_hyphenated_param(self):
        op = self._compiled("/files/{file-name}")
        call = build_client_call(op)
        assert call["destructure"] == '{ "file-name": fileName }'
        assert call["url"] == "/files/${fileName}"

    def test_path_and_query(self):
        op = self._compiled("/users/{id}/posts", parameters=[
            {"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}},
            {"name": "page", "in": "query", "schema": {"type": "integer"}},
        ])
        call = build_client_call(op)
        assert call["destructure"] == "{ id, ...query }"
        assert call["query_expr"] == "query"

    def test_alias_body(self):
        op = self._compiled("/ids", method="post", body={"type": "array", "items": {"type": "integer"}})
        assert build_client_call(op)["data_expr"] == "params"

    def test_wrapped_body(self):
        op = self._compiled(
            "/groups/{groupId}/ids",
            method="post",
            parameters=[{"name": "groupId", "in": "path", "required": True, "schema": {"type": "string"}}],
            body={"type": "array", "items": {"type": "integer"}},
        )
        call = build_client_call(op)
        assert call["destructure"] == "{ groupId, body }"
        assert call["data_expr"] == "body"

    def test_base_url(self):
        op = self._compiled("/pets")
        assert build_client_call(op, "https://api.example.com/")["url"] == "https://api.example.com/pets"


class TestBuildContextWithoutRequestConfig:

    def test_defaults(self):
        ctx = build_context(build_module(petstore_spec(), "Pets", "pets", "Api"))
        assert ctx["import_path"] == ""
        assert ctx["types_import"] == ""
        assert ctx["module_name"] == "pets"

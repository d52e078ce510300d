"""Tests for dependency resolution and dispatch."""

import re as _re
import typing as _typing

import pytest as _pytest

import stratum.config as config
import stratum.controllers as controllers
import stratum.core as core
import stratum.errors as errors
import stratum.model as model
import stratum.process as process

ROBERT = {"student_name": "Robert Redford"}


def create_student(
    process_ctx: process.ProcessContext,
    type_name: str,
    ctx: core.CallContext,
) -> core.ResolvedObject:
    """Query-then-create: reuse an existing student with the same name."""
    found = process_ctx.query_single(
        type_name, {"student_name": ctx["student_name"]}, ctx["student_name"]
    )
    if found:
        return process_ctx.register(found[0])
    return process_ctx.controller_create(type_name)


def _router_registry(router_data_required: bool = True) -> model.SchemaRegistry:
    registry = model.SchemaRegistry()
    with registry.define("router") as router:
        router.needs_data("router_name", operations="create", required=router_data_required)
        router.hdata("router_name", "name")
    with registry.define("router_interface") as interface:
        interface.needs_object("router")
        interface.needs_data("router_id", extract_from="router/id", mapping="router_ref")
    return registry


class _NameOnlyController(controllers.Controller):
    @property
    def name(self) -> str:
        return "bare"


# =============================================================================
# Generic controller operations
# =============================================================================


class TestCreate:
    """Tests for create with the generic controller primitive."""

    def test_create_calls_controller_once(
        self,
        dispatcher: core.Dispatcher,
        mock_controller: controllers.MockController,
    ) -> None:
        """One create call; the controller assigns the id and the name is echoed."""
        student = dispatcher.create("student", ROBERT)
        assert mock_controller.count("create", "student") == 1
        assert student["id"] == 1
        assert student["student_name"] == "Robert Redford"

    def test_payload_uses_backend_names(
        self,
        dispatcher: core.Dispatcher,
        mock_controller: controllers.MockController,
    ) -> None:
        """Data values reach the backend under their mapped names."""
        dispatcher.create("student", {**ROBERT, "course": "Art"})
        assert mock_controller.records("student") == [
            {"name": "Robert Redford", "training": "Art", "id": 1}
        ]

    def test_optional_data_falls_back_to_config(self, dispatcher: core.Dispatcher) -> None:
        """Optional values not given in params come from the config layers."""
        assert dispatcher.create("student", ROBERT)["course"] == "Unset"

    def test_params_do_not_leak_into_config(self, dispatcher: core.Dispatcher) -> None:
        """Call parameters are only visible during the call."""
        dispatcher.create("student", ROBERT)
        assert dispatcher.config.get("student_name") is None

    def test_created_object_registered(self, dispatcher: core.Dispatcher) -> None:
        """The new object becomes the working-set object of its type."""
        student = dispatcher.create("student", ROBERT)
        assert dispatcher.working_set.get("student") is student
        assert student.registered is True

    def test_missing_required_data(
        self,
        dispatcher: core.Dispatcher,
        mock_controller: controllers.MockController,
    ) -> None:
        """A missing required value fails before the controller is called."""
        with _pytest.raises(errors.MissingRequiredDependencyError) as exc:
            dispatcher.create("student")
        assert exc.value.dependency == "student_name"
        assert exc.value.kind == "data"
        assert exc.value.operation == "create"
        assert mock_controller.calls == []

    def test_required_data_from_config(
        self,
        dispatcher: core.Dispatcher,
        student_config: config.Config,
    ) -> None:
        """Required values may come from the config instead of params."""
        student_config.set("student_name", "Paul Newman")
        assert dispatcher.create("student")["student_name"] == "Paul Newman"

    def test_default_value_satisfies_requirement(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """A declared default stands in for a missing required value."""
        registry = model.SchemaRegistry()
        with registry.define("server") as server:
            server.needs_data("flavor", default_value="small", mapping="flavorRef")
        dispatcher = core.Dispatcher(registry, student_config, mock_controller)
        dispatcher.create("server")
        assert mock_controller.records("server")[0]["flavorRef"] == "small"

    def test_unmapped_value_rejected(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """A value missing from the attribute's value map fails before dispatch."""
        registry = model.SchemaRegistry()
        with registry.define("student") as student:
            student.needs_data("course")
            student.attr_mapping("course", "training")
            student.attr_value_mapping("course", {"Art": "ART-101"})
        dispatcher = core.Dispatcher(registry, student_config, mock_controller)
        assert dispatcher.create("student", {"course": "Art"})["course"] == "Art"
        assert mock_controller.records("student")[0]["training"] == "ART-101"
        with _pytest.raises(errors.AttributeMappingError):
            dispatcher.create("student", {"course": "Drama"})

    def test_unknown_type(self, dispatcher: core.Dispatcher) -> None:
        """Undeclared types are reported with the operation."""
        with _pytest.raises(errors.UnknownObjectTypeError) as exc:
            dispatcher.create("teacher")
        assert exc.value.type_name == "teacher"
        assert exc.value.operation == "create"

    def test_unbound_primitive(
        self,
        student_registry: model.SchemaRegistry,
        student_config: config.Config,
    ) -> None:
        """A controller without the primitive reports an unbound operation."""
        dispatcher = core.Dispatcher(student_registry, student_config, _NameOnlyController())
        with _pytest.raises(errors.UnboundOperationError, match="does not implement create"):
            dispatcher.create("student", ROBERT)

    def test_registry_frozen(self, dispatcher: core.Dispatcher) -> None:
        """The registry accepts no new types once a dispatcher uses it."""
        assert dispatcher.registry.frozen is True
        with _pytest.raises(errors.DeclarationError):
            dispatcher.registry.define("teacher")


class TestQuery:
    """Tests for the generic query primitive."""

    @_pytest.fixture
    def seeded(
        self,
        student_registry: model.SchemaRegistry,
        student_config: config.Config,
    ) -> core.Dispatcher:
        controller = controllers.MockController(
            {
                "student": [
                    {"name": "Ann", "training": "Art Drama", "status": "active"},
                    {"name": "Bob", "training": "Art Drama", "status": "removed"},
                    {"name": "Cid", "training": "Art Comedy", "status": "active"},
                    {"name": "Dee", "training": "Art Drama"},
                ]
            }
        )
        return core.Dispatcher(student_registry, student_config, controller)

    def test_soft_deleted_records_hidden(self, seeded: core.Dispatcher) -> None:
        """Without a status filter only active matches are returned."""
        found = seeded.query("student", {"course": "Art Drama"})
        assert [item["student_name"] for item in found] == ["Ann", "Dee"]
        assert found.query == {"course": "Art Drama"}

    def test_explicit_status_filter(self, seeded: core.Dispatcher) -> None:
        """Filtering on the status attribute disables the soft-delete check."""
        found = seeded.query("student", {"status": "removed"})
        assert [item["student_name"] for item in found] == ["Bob"]

    def test_regex_filter(self, seeded: core.Dispatcher) -> None:
        """Compiled patterns match with search."""
        found = seeded.query("student", {"course": _re.compile("Comedy$")})
        assert [item["student_name"] for item in found] == ["Cid"]

    def test_empty_query_returns_all_active(self, seeded: core.Dispatcher) -> None:
        """An empty filter returns every active record."""
        assert len(seeded.query("student")) == 3

    def test_query_does_not_register(self, seeded: core.Dispatcher) -> None:
        """Query results are not added to the working set."""
        seeded.query("student", {"course": "Art Drama"})
        assert "student" not in seeded.working_set

    def test_non_queryable_attribute(self, seeded: core.Dispatcher) -> None:
        """Filtering on an undeclared attribute is an error."""
        with _pytest.raises(errors.AttributeMappingError, match="not a queryable"):
            seeded.query("student", {"shoe_size": 42})


class TestGet:
    """Tests for the generic get primitive."""

    def test_get_by_id(
        self,
        dispatcher: core.Dispatcher,
        mock_controller: controllers.MockController,
    ) -> None:
        """get returns the object and registers it."""
        record = mock_controller.store("student", {"name": "Ann", "training": "Art"})
        student = dispatcher.get("student", record["id"])
        assert student["course"] == "Art"
        assert dispatcher.working_set.get("student") is student

    def test_get_not_found(self, dispatcher: core.Dispatcher) -> None:
        """An unknown id returns an empty, unregistered object."""
        student = dispatcher.get("student", 404)
        assert student.is_empty is True
        assert "student" not in dispatcher.working_set

    def test_mapping_round_trip(
        self,
        dispatcher: core.Dispatcher,
        mock_controller: controllers.MockController,
    ) -> None:
        """Attributes read and write through their backend names."""
        record = mock_controller.store("student", {"training": "Art Comedy"})
        student = dispatcher.get("student", record["id"])
        assert student["course"] == "Art Comedy"
        student["course"] = "Art Drama"
        assert student.payload["training"] == "Art Drama"


class TestUpdate:
    """Tests for the generic update primitive."""

    def test_update_changed_attribute(
        self,
        dispatcher: core.Dispatcher,
        mock_controller: controllers.MockController,
    ) -> None:
        """Changed values are written to the backend."""
        dispatcher.create("student", ROBERT)
        student = dispatcher.update("student", {"course": "Drama"})
        assert student["course"] == "Drama"
        assert mock_controller.records("student")[0]["training"] == "Drama"
        assert mock_controller.count("update") == 1

    def test_update_without_change_skips_controller(
        self,
        dispatcher: core.Dispatcher,
        mock_controller: controllers.MockController,
    ) -> None:
        """Identical values make no controller call."""
        dispatcher.create("student", {**ROBERT, "course": "Art"})
        dispatcher.update("student", {"course": "Art"})
        assert mock_controller.count("update") == 0

    def test_update_explicit_object(
        self,
        dispatcher: core.Dispatcher,
        mock_controller: controllers.MockController,
    ) -> None:
        """params[type] selects the object to update."""
        first = dispatcher.create("student", ROBERT)
        dispatcher.create("student", {"student_name": "Paul Newman"})
        dispatcher.update("student", {"student": first, "course": "Drama"})
        assert mock_controller.data["student"][first["id"]]["training"] == "Drama"

    def test_update_without_object(self, dispatcher: core.Dispatcher) -> None:
        """Updating with no object to update is a missing dependency."""
        with _pytest.raises(errors.MissingRequiredDependencyError, match="no student object"):
            dispatcher.update("student", {"course": "Drama"})

    def test_update_failure_raises(
        self,
        dispatcher: core.Dispatcher,
        mock_controller: controllers.MockController,
    ) -> None:
        """A controller reporting failure raises BackendFailureError."""
        student = dispatcher.create("student", ROBERT)
        del mock_controller.data["student"][student["id"]]
        with _pytest.raises(errors.BackendFailureError, match="failed update"):
            dispatcher.update("student", {"course": "Drama"})


class TestDelete:
    """Tests for the generic delete primitive."""

    def test_delete_working_set_object(
        self,
        dispatcher: core.Dispatcher,
        mock_controller: controllers.MockController,
    ) -> None:
        """delete removes the record and forgets the object."""
        dispatcher.create("student", ROBERT)
        assert dispatcher.delete("student") is True
        assert mock_controller.records("student") == []
        assert "student" not in dispatcher.working_set

    def test_delete_explicit_object(
        self,
        dispatcher: core.Dispatcher,
        mock_controller: controllers.MockController,
    ) -> None:
        """params[type] selects the object to delete; the working set is kept."""
        first = dispatcher.create("student", ROBERT)
        second = dispatcher.create("student", {"student_name": "Paul Newman"})
        assert dispatcher.delete("student", {"student": first}) is True
        assert [r["name"] for r in mock_controller.records("student")] == ["Paul Newman"]
        assert dispatcher.working_set.get("student") is second

    def test_delete_without_object(self, dispatcher: core.Dispatcher) -> None:
        """Deleting with nothing to delete is a missing dependency."""
        with _pytest.raises(errors.MissingRequiredDependencyError):
            dispatcher.delete("student")


class TestRefresh:
    """Tests for refresh."""

    def test_refresh_reads_backend_changes(
        self,
        dispatcher: core.Dispatcher,
        mock_controller: controllers.MockController,
    ) -> None:
        """Backend changes are pulled into the working-set object."""
        student = dispatcher.create("student", ROBERT)
        assert student.attrs["course"] == "Unset"
        mock_controller.data["student"][student["id"]]["training"] = "Drama"
        assert dispatcher.refresh("student") is True
        assert student.attrs["course"] == "Drama"
        assert dispatcher.refresh("student") is False

    def test_refresh_without_object(self, dispatcher: core.Dispatcher) -> None:
        """Nothing to refresh is a missing dependency."""
        with _pytest.raises(errors.MissingRequiredDependencyError):
            dispatcher.refresh("student")


# =============================================================================
# Process handlers
# =============================================================================


class TestHandlers:
    """Tests for process handler dispatch."""

    def _registry(self, **handlers: _typing.Any) -> model.SchemaRegistry:
        registry = model.SchemaRegistry()
        with registry.define("student") as student:
            student.handle_all(query=model.USE_CONTROLLER, **handlers)
            student.needs_data("student_name", operations="create")
            student.attr_mapping("student_name", "name")
        return registry

    def test_query_then_create(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """A second create with the same name returns the first object unchanged."""
        dispatcher = core.Dispatcher(
            self._registry(create=create_student), student_config, mock_controller
        )
        first = dispatcher.create("student", ROBERT)
        second = dispatcher.create("student", ROBERT)
        assert mock_controller.count("create") == 1
        assert second["id"] == first["id"]
        assert second["student_name"] == "Robert Redford"
        assert mock_controller.count("query") == 2

    def test_handler_receives_process_and_context(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """Handlers get the process facade, the type name and the call context."""
        seen: dict[str, _typing.Any] = {}

        def handler(
            process_ctx: process.ProcessContext, type_name: str, ctx: core.CallContext
        ) -> dict[str, _typing.Any]:
            seen.update(process=process_ctx, type_name=type_name, ctx=ctx)
            return {"id": 99, "name": ctx["student_name"]}

        dispatcher = core.Dispatcher(
            self._registry(create=handler), student_config, mock_controller
        )
        student = dispatcher.create("student", {**ROBERT, "note": "extra"})
        assert seen["process"] is dispatcher.process
        assert seen["type_name"] == "student"
        assert seen["ctx"]["note"] == "extra"
        assert seen["ctx"].hdata == {"name": "Robert Redford"}
        assert student["id"] == 99
        assert dispatcher.working_set.get("student") is student
        assert mock_controller.calls == []

    def test_handler_returning_none(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """A handler returning nothing yields an empty object."""
        dispatcher = core.Dispatcher(
            self._registry(create=lambda p, t, c: None), student_config, mock_controller
        )
        student = dispatcher.create("student", ROBERT)
        assert student.is_empty is True
        assert "student" not in dispatcher.working_set

    def test_query_handler_results_wrapped(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """Raw query handler results become a ResolvedList."""
        registry = model.SchemaRegistry()
        with registry.define("student") as student:
            student.handle("query", lambda p, t, c: [{"id": 1, "name": "Ann"}])
        dispatcher = core.Dispatcher(registry, student_config, mock_controller)
        found = dispatcher.query("student", {"name": "Ann"})
        assert isinstance(found, core.ResolvedList)
        assert found[0]["name"] == "Ann"

    def test_delete_handler(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """A delete handler's truthy result forgets the object."""
        dispatcher = core.Dispatcher(
            self._registry(create=model.USE_CONTROLLER, delete=lambda p, t, c: True),
            student_config,
            mock_controller,
        )
        dispatcher.create("student", ROBERT)
        assert dispatcher.delete("student") is True
        assert "student" not in dispatcher.working_set
        assert mock_controller.count("delete") == 0

    def test_handler_exception_wrapped(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """Foreign exceptions surface as BackendFailureError with the cause kept."""

        def handler(p: _typing.Any, t: str, c: _typing.Any) -> None:
            raise ValueError("backend exploded")

        dispatcher = core.Dispatcher(
            self._registry(create=handler), student_config, mock_controller
        )
        with _pytest.raises(errors.BackendFailureError, match="backend exploded") as exc:
            dispatcher.create("student", ROBERT)
        assert isinstance(exc.value.__cause__, ValueError)
        assert exc.value.operation == "create"

    def test_controller_primitive_bypasses_handler(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """controller_create ignores the bound handler."""
        dispatcher = core.Dispatcher(
            self._registry(create=lambda p, t, c: None), student_config, mock_controller
        )
        student = dispatcher.controller_create("student", ROBERT)
        assert student["id"] == 1
        assert mock_controller.count("create") == 1


# =============================================================================
# Object dependencies
# =============================================================================


class TestObjectDependencies:
    """Tests for resolving object dependencies."""

    def test_missing_required_dependency_makes_no_calls(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """A dependency that cannot be created fails before any backend call."""
        dispatcher = core.Dispatcher(_router_registry(), student_config, mock_controller)
        with _pytest.raises(errors.MissingRequiredDependencyError) as exc:
            dispatcher.create("router_interface")
        assert exc.value.dependency == "router_name"
        assert mock_controller.calls == []

    def test_missing_dependency_created(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """A required object absent from the session is created first."""
        dispatcher = core.Dispatcher(_router_registry(), student_config, mock_controller)
        interface = dispatcher.create("router_interface", {"router_name": "r1"})
        router = dispatcher.working_set.get("router")
        assert router is not None
        assert router["name"] == "r1"
        assert mock_controller.calls == [("create", "router"), ("create", "router_interface")]
        assert interface.payload["router_ref"] == router["id"]

    def test_working_set_object_reused(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """An object already in the session satisfies the dependency."""
        dispatcher = core.Dispatcher(_router_registry(), student_config, mock_controller)
        dispatcher.create("router", {"router_name": "r1"})
        dispatcher.create("router_interface")
        dispatcher.create("router_interface")
        assert mock_controller.count("create", "router") == 1
        assert mock_controller.count("create", "router_interface") == 2

    def test_dependency_by_identifier(
        self,
        student_config: config.Config,
    ) -> None:
        """An identifier in params is fetched with get."""
        controller = controllers.MockController({"router": [{"name": "existing"}]})
        dispatcher = core.Dispatcher(_router_registry(), student_config, controller)
        interface = dispatcher.create("router_interface", {"router": 1})
        assert controller.calls == [("get", "router"), ("create", "router_interface")]
        assert interface.payload["router_ref"] == 1

    def test_identifier_beats_working_set(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """An identifier naming another object is fetched, not replaced by the session's."""
        dispatcher = core.Dispatcher(_router_registry(), student_config, mock_controller)
        dispatcher.create("router", {"router_name": "r1"})
        dispatcher.create("router", {"router_name": "r2"})
        interface = dispatcher.create("router_interface", {"router": 1})
        assert mock_controller.calls[-2:] == [("get", "router"), ("create", "router_interface")]
        assert interface.payload["router_ref"] == 1
        assert dispatcher.working_set.get("router")["id"] == 1

    def test_identifier_of_working_set_object(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """An identifier matching the session's object reuses it without a get."""
        dispatcher = core.Dispatcher(_router_registry(), student_config, mock_controller)
        dispatcher.create("router", {"router_name": "r1"})
        interface = dispatcher.create("router_interface", {"router": 1})
        assert mock_controller.count("get") == 0
        assert interface.payload["router_ref"] == 1

    def test_extracted_value_beats_config(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """A value extracted from a resolved object ignores stale config."""
        student_config.set("router_id", 999, name="local")
        dispatcher = core.Dispatcher(_router_registry(), student_config, mock_controller)
        dispatcher.create("router", {"router_name": "r1"})
        interface = dispatcher.create("router_interface")
        assert interface.payload["router_ref"] == 1

    def test_explicit_param_beats_extracted_value(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """A call parameter still overrides the extracted value."""
        dispatcher = core.Dispatcher(_router_registry(), student_config, mock_controller)
        dispatcher.create("router", {"router_name": "r1"})
        interface = dispatcher.create("router_interface", {"router_id": 7})
        assert interface.payload["router_ref"] == 7

    def test_shared_dependency_resolved_once(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """Types sharing a dependency in one request receive the same object."""
        seen: dict[str, _typing.Any] = {}

        def record(
            process_ctx: process.ProcessContext,
            type_name: str,
            ctx: core.CallContext,
        ) -> dict[str, _typing.Any]:
            seen[type_name] = ctx["net"]
            return {"id": type_name}

        registry = model.SchemaRegistry()
        registry.define("net").commit()
        for name in ("a", "b"):
            with registry.define(name) as builder:
                builder.handle("create", record)
                builder.needs_object("net")
        with registry.define("top") as top:
            top.handle("create", record)
            top.needs_object("a")
            top.needs_object("b")
            top.needs_object("net")
        dispatcher = core.Dispatcher(registry, student_config, mock_controller)
        dispatcher.create("top")
        assert mock_controller.count("create", "net") == 1
        assert seen["top"] is seen["a"]
        assert seen["top"] is seen["b"]

    def test_dependency_identifier_not_found(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """An identifier that resolves to nothing is a missing object."""
        dispatcher = core.Dispatcher(_router_registry(), student_config, mock_controller)
        with _pytest.raises(errors.MissingRequiredDependencyError) as exc:
            dispatcher.create("router_interface", {"router": 404})
        assert exc.value.kind == "object"
        assert mock_controller.count("create") == 0

    def test_explicit_object_param(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """A ResolvedObject in params is used as the dependency."""
        dispatcher = core.Dispatcher(_router_registry(), student_config, mock_controller)
        router = dispatcher.create("router", {"router_name": "r1"})
        dispatcher.reset()
        interface = dispatcher.create("router_interface", {"router": router})
        assert interface.payload["router_ref"] == router["id"]
        assert mock_controller.count("create", "router") == 1

    def test_backend_sees_native_dependency(
        self,
        student_config: config.Config,
    ) -> None:
        """Controllers receive native payloads for object dependencies."""
        seen: dict[str, _typing.Any] = {}

        class _Recording(controllers.MockController):
            def create(self, type_name: str, params: core.CallContext) -> dict[str, _typing.Any]:
                if type_name == "router_interface":
                    seen["router"] = params["router"]
                return super().create(type_name, params)

        dispatcher = core.Dispatcher(_router_registry(), student_config, _Recording())
        dispatcher.create("router_interface", {"router_name": "r1"})
        assert seen["router"] == {"name": "r1", "id": 1}

    def test_optional_dependency_absent(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """An optional object that is not available is left out."""
        registry = model.SchemaRegistry()
        registry.define("network").commit()
        with registry.define("server") as server:
            server.handle("create", lambda p, t, c: {"id": 1, "has_net": "network" in c})
            server.optional().needs_object("network")
        dispatcher = core.Dispatcher(registry, student_config, mock_controller)
        assert dispatcher.create("server").payload["has_net"] is False
        assert mock_controller.calls == []

    def test_dependency_cycle(
        self,
        student_config: config.Config,
        mock_controller: controllers.MockController,
    ) -> None:
        """Types needing each other are reported as a cycle."""
        registry = model.SchemaRegistry()
        registry.define("alpha").needs_object("beta").commit()
        registry.define("beta").needs_object("alpha").commit()
        dispatcher = core.Dispatcher(registry, student_config, mock_controller)
        with _pytest.raises(errors.DependencyCycleError) as exc:
            dispatcher.create("alpha")
        assert exc.value.chain == ("alpha", "beta", "alpha")
        assert mock_controller.calls == []

    def test_reset_clears_session(
        self,
        dispatcher: core.Dispatcher,
    ) -> None:
        """reset drops every working-set object."""
        dispatcher.create("student", ROBERT)
        dispatcher.reset()
        assert len(dispatcher.working_set) == 0

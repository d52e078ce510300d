"""Tests for ConfigLayer and LayerStack."""

import pathlib as _pathlib
import threading as _threading

import pytest as _pytest

import stratum.config.layers as layers
import stratum.config.store as store
import stratum.errors as errors


def _three_layers(tmp_path: _pathlib.Path) -> layers.LayerStack:
    """runtime (rw), local (rw, load/save), default (ro, load) with course=Unset."""
    return layers.LayerStack(
        [
            layers.define_layer("runtime"),
            layers.define_layer(
                "local",
                store.DataStore(filename=tmp_path / "local.yaml"),
                can_load=True,
                can_save=True,
            ),
            layers.define_layer(
                "default",
                store.DataStore({"course": "Unset"}),
                can_write=False,
                can_load=True,
            ),
        ]
    )


class TestDefineLayer:
    """Tests for define_layer()."""

    def test_defaults_to_runtime(self) -> None:
        """Without arguments a writable in-memory runtime layer is built."""
        layer = layers.define_layer()
        assert layer.name == "runtime"
        assert layer.can_write is True
        assert layer.can_load is False
        assert layer.can_save is False

    def test_layer_defaults(self) -> None:
        """A ConfigLayer built directly has its own store and no standing options."""
        first = layers.ConfigLayer("a")
        second = layers.ConfigLayer("b")
        assert first.options == store.DataOptions()
        assert first.store is not second.store
        assert first.predefined is False

    def test_duplicate_names_rejected(self) -> None:
        """Layer names must be unique in a stack."""
        with _pytest.raises(errors.LayerError):
            layers.LayerStack([layers.define_layer("a"), layers.define_layer("a")])


class TestPriority:
    """Tests for read precedence."""

    def test_highest_layer_wins(self, tmp_path: _pathlib.Path) -> None:
        """get returns the value of the highest-priority layer holding the key."""
        stack = _three_layers(tmp_path)
        stack.set("course", "Drama", name="local")
        assert stack.get("course") == "Drama"
        stack.set("course", "Art")
        assert stack.get("course") == "Art"

    def test_default_returned_when_missing(self, tmp_path: _pathlib.Path) -> None:
        """A key in no layer returns the default."""
        stack = _three_layers(tmp_path)
        assert stack.get("missing", "fallback") == "fallback"

    def test_falsy_values_are_hits(self, tmp_path: _pathlib.Path) -> None:
        """A stored False or 0 stops the scan like any other value."""
        stack = _three_layers(tmp_path)
        stack.set("course", 0)
        assert stack.get("course", "fallback") == 0

    def test_scan_restricted_by_name(self, tmp_path: _pathlib.Path) -> None:
        """names= restricts the layers scanned."""
        stack = _three_layers(tmp_path)
        stack.set("course", "Art")
        assert stack.get("course", names="default") == "Unset"
        assert stack.get("course", names=["runtime", "default"]) == "Art"

    def test_scan_restricted_by_index(self, tmp_path: _pathlib.Path) -> None:
        """indexes= restricts the layers scanned."""
        stack = _three_layers(tmp_path)
        stack.set("course", "Art")
        assert stack.get("course", indexes=2) == "Unset"

    def test_exists_is_any_layer(self, tmp_path: _pathlib.Path) -> None:
        """exists is true when any layer holds the key."""
        stack = _three_layers(tmp_path)
        assert stack.exists("course") is True
        assert stack.exists("nothing") is False
        assert "course" in stack

    def test_where_collects_every_layer(self, tmp_path: _pathlib.Path) -> None:
        """where lists every matching layer, not just the first."""
        stack = _three_layers(tmp_path)
        stack.set("course", "Art")
        stack.set("course", "Drama", name="local")
        assert stack.where("course") == ["runtime", "local", "default"]

    def test_where_empty_list_when_absent(self, tmp_path: _pathlib.Path) -> None:
        """where returns an empty list for an unknown key."""
        assert _three_layers(tmp_path).where("nothing") == []

    def test_merge_bottom_up(self) -> None:
        """merge combines dict values with higher layers winning."""
        stack = layers.LayerStack(
            [
                layers.define_layer("top", store.DataStore({"net": {"name": "private"}})),
                layers.define_layer(
                    "bottom", store.DataStore({"net": {"name": "public", "cidr": "10.0.0.0/24"}})
                ),
            ]
        )
        assert stack.merge("net") == {"name": "private", "cidr": "10.0.0.0/24"}


class TestWrites:
    """Tests for write targeting."""

    def test_set_without_selector_targets_layer_zero(self, tmp_path: _pathlib.Path) -> None:
        """set with no selector writes the first layer."""
        stack = _three_layers(tmp_path)
        stack.set("course", "Art")
        assert stack.where("course") == ["runtime", "default"]
        assert stack.get("course") == "Art"

    def test_set_by_index(self, tmp_path: _pathlib.Path) -> None:
        """index= selects the target layer."""
        stack = _three_layers(tmp_path)
        stack.set("course", "Art", index=1)
        assert stack.where("course") == ["local", "default"]

    def test_readonly_layer_rejects_writes(self, tmp_path: _pathlib.Path) -> None:
        """A can_write=False layer is never changed by set or delete."""
        stack = _three_layers(tmp_path)
        assert stack.set("course", "Art", name="default") is None
        assert stack.set("other", 1, name="default") is None
        assert stack.delete("course", name="default") is None
        assert stack.layer("default").store.data == {"course": "Unset"}

    def test_delete_does_not_cascade(self, tmp_path: _pathlib.Path) -> None:
        """Deleting from one layer reveals the lower layer's value."""
        stack = _three_layers(tmp_path)
        stack.set("course", "Art")
        assert stack.get("course") == "Art"
        assert stack.delete("course") == "Art"
        assert stack.get("course") == "Unset"

    def test_item_access(self, tmp_path: _pathlib.Path) -> None:
        """[] reads and writes like get/set."""
        stack = _three_layers(tmp_path)
        stack["flavor"] = "small"
        assert stack["flavor"] == "small"

    def test_unknown_layer_name_raises(self, tmp_path: _pathlib.Path) -> None:
        """Targeting a layer that does not exist is an error."""
        with _pytest.raises(errors.LayerError):
            _three_layers(tmp_path).set("a", 1, name="nope")

    def test_index_out_of_range_raises(self, tmp_path: _pathlib.Path) -> None:
        """Targeting an index outside the stack is an error."""
        with _pytest.raises(errors.LayerError):
            _three_layers(tmp_path).set("a", 1, index=9)

    def test_empty_key_path_rejected(self, tmp_path: _pathlib.Path) -> None:
        """Stack operations reject an empty key path."""
        with _pytest.raises(errors.KeyPathError):
            _three_layers(tmp_path).get(())

    def test_concurrent_writes_are_serialized(self) -> None:
        """Writes from several threads all land."""
        stack = layers.LayerStack()

        def writer(prefix: str) -> None:
            for i in range(100):
                stack.set((prefix, str(i)), i)

        threads = [_threading.Thread(target=writer, args=(f"t{n}",)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len(stack.layer("runtime").store) == 400


class TestFiles:
    """Tests for layer load/save."""

    def test_save_and_load_round_trip(self, tmp_path: _pathlib.Path) -> None:
        """A saved layer reloads into a fresh stack with the same values."""
        stack = _three_layers(tmp_path)
        stack.set(("server", "flavor"), "small", name="local")
        assert stack.save(name="local") is True

        fresh = _three_layers(tmp_path)
        assert fresh.load(name="local") is True
        assert fresh.get(("server", "flavor")) == "small"

    def test_save_refused_without_capability(self, tmp_path: _pathlib.Path) -> None:
        """Layers without can_save return False."""
        stack = _three_layers(tmp_path)
        assert stack.save(name="runtime") is False
        assert stack.save(name="default") is False

    def test_load_refused_without_capability(self, tmp_path: _pathlib.Path) -> None:
        """Layers without can_load return False."""
        assert _three_layers(tmp_path).load() is False

    def test_save_refused_when_file_readonly(self, tmp_path: _pathlib.Path) -> None:
        """A layer with standing file_readonly cannot be saved."""
        stack = layers.LayerStack(
            [
                layers.define_layer(
                    "ro",
                    store.DataStore(filename=tmp_path / "ro.yaml"),
                    can_save=True,
                    options=store.DataOptions(file_readonly=True),
                )
            ]
        )
        assert stack.save(name="ro") is False
        assert not (tmp_path / "ro.yaml").exists()

    def test_load_io_error_raises(self, tmp_path: _pathlib.Path) -> None:
        """A missing file is reported as ConfigFileError."""
        stack = _three_layers(tmp_path)
        with _pytest.raises(errors.ConfigFileError):
            stack.load(name="local")

    def test_filename_immutable_once_set(self, tmp_path: _pathlib.Path) -> None:
        """A layer's filename cannot be changed unless filename_mutable."""
        stack = _three_layers(tmp_path)
        assert stack.filename(name="local") == tmp_path / "local.yaml"
        assert stack.filename(name="local", value=tmp_path / "other.yaml") is None
        assert stack.filename(name="local") == tmp_path / "local.yaml"

    def test_filename_mutable(self, tmp_path: _pathlib.Path) -> None:
        """filename_mutable layers accept a new filename."""
        stack = layers.LayerStack(
            [
                layers.define_layer(
                    "account",
                    store.DataStore(filename=tmp_path / "a.yaml"),
                    can_load=True,
                    can_save=True,
                    filename_mutable=True,
                )
            ]
        )
        assert stack.filename(name="account", value=tmp_path / "b.yaml") == tmp_path / "b.yaml"


class TestLayerManagement:
    """Tests for add/remove and overlays."""

    def test_add_layer_on_top(self) -> None:
        """add_layer inserts at index 0 by default."""
        stack = layers.LayerStack()
        stack.add_layer(layers.define_layer("extra", store.DataStore({"a": 1})))
        assert stack.layer_names() == ["extra", "runtime"]
        assert stack.get("a") == 1

    def test_remove_added_layer(self) -> None:
        """Added layers can be removed."""
        stack = layers.LayerStack()
        stack.add_layer(layers.define_layer("extra"))
        stack.remove_layer("extra")
        assert stack.layer_names() == ["runtime"]

    def test_predefined_layer_cannot_be_removed(self) -> None:
        """Constructor layers are permanent."""
        with _pytest.raises(errors.LayerError):
            layers.LayerStack().remove_layer("runtime")

    def test_overlay_is_read_only_and_temporary(self) -> None:
        """An overlay shadows values for the block and disappears after."""
        stack = layers.LayerStack()
        stack.set("course", "Art")
        with stack.overlay({"course": "Drama"}) as layer:
            assert layer is not None
            assert stack.get("course") == "Drama"
            assert stack.set("course", "X", name=layer.name) is None
        assert stack.get("course") == "Art"
        assert len(stack) == 1

    def test_overlay_removed_on_error(self) -> None:
        """The overlay is removed even when the block raises."""
        stack = layers.LayerStack()
        with _pytest.raises(RuntimeError):
            with stack.overlay({"a": 1}):
                raise RuntimeError("boom")
        assert stack.layer_names() == ["runtime"]

    def test_empty_overlay_pushes_nothing(self) -> None:
        """No values, no layer."""
        stack = layers.LayerStack()
        with stack.overlay({}) as layer:
            assert layer is None
            assert len(stack) == 1

    def test_describe_rows(self, tmp_path: _pathlib.Path) -> None:
        """describe() reports one row per layer."""
        rows = _three_layers(tmp_path).describe()
        assert [row["name"] for row in rows] == ["runtime", "local", "default"]
        assert rows[2]["writable"] is False
        assert rows[2]["keys"] == 1

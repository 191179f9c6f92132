from vendorflow.contracts import Variable
from vendorflow.variables import VariableStore, to_variable_value


def test_overwrite_keeps_position_and_uniqueness():
    store = VariableStore()
    store.set("a", "1")
    store.set("b", "2")
    store.set("a", "3")

    assert store.keys() == ["a", "b"]
    assert store.get("a") == "3"
    assert len(store) == 2


def test_as_dict_skips_disabled_variables():
    store = VariableStore(
        [Variable(key="on", value="x"), Variable(key="off", value="y", enabled=False)]
    )
    assert store.as_dict() == {"on": "x"}
    assert store.as_dict(enabled_only=False) == {"on": "x", "off": "y"}


def test_from_document_reads_postman_environment():
    doc = {
        "name": "env",
        "values": [
            {"key": "url", "value": "https://x.test", "type": "default", "enabled": True},
            {"key": "retries", "value": 3},
            {"key": "", "value": "ignored"},
            {"key": "empty", "value": None},
        ],
    }
    store = VariableStore.from_document(doc)

    assert store.name == "env"
    assert store.as_dict() == {"url": "https://x.test", "retries": "3", "empty": ""}


def test_copy_is_independent():
    store = VariableStore([Variable(key="a", value="1")])
    clone = store.copy()
    clone.set("a", "2")
    assert store.get("a") == "1"


def test_to_variable_value_is_canonical():
    assert to_variable_value("plain") == "plain"
    assert to_variable_value({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'
    assert to_variable_value(True) == "true"

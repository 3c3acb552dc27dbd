from core_utils import jsonx

def test_jsonx_roundtrip():
    obj = {"b": ["x", 2], "a": 1}
    s = jsonx.dumps(obj)
    assert s == '{"a":1,"b":["x",2]}'
    assert jsonx.loads(s) == obj

def test_loads_tolerates_bom():
    assert jsonx.loads(b"\xef\xbb\xbf[1,2]") == [1, 2]

def test_sanitize_exceptions_and_sets():
    out = jsonx.sanitize({"err": ValueError("boom"), "s": {1}, "t": (1, 2)})
    assert out == {"err": {"error": "ValueError", "message": "boom"}, "s": [1], "t": [1, 2]}

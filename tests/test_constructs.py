import pytest

from verifier.constructs import check_any_construct, check_construct, strip_strings_and_comments

@pytest.mark.parametrize("code", ["s[1:4]", "s[1:]", "s[:4]", "s[::2]", "s[::-1]", "rows[i][1:]", "f(x)[a:b]"])
def test_slice_detected(code):
    assert check_construct(code, "slice").detected

@pytest.mark.parametrize("code", ["s[0]", "s[-1]", 'd["key"]', 'd["a:b"]', "xs = [1, 2]", "sorted(xs, key=lambda p: p[1])"])
def test_slice_not_detected(code):
    assert not check_construct(code, "slice").detected

def test_comprehension_ignores_strings_and_comments():
    assert check_construct("[x for x in items]", "comprehension").detected
    assert not check_construct('"[x for x in items]"', "comprehension").detected
    assert not check_construct("# [x for x in items]", "comprehension").detected
    assert not check_construct("msg = 'it\\'s [x for x in items]'", "comprehension").detected

@pytest.mark.parametrize(
    "code",
    [
        "squares = [n * n for n in nums if n % 2]",
        "lookup = {k: v for k, v in pairs}",
        "unique = {w.lower() for w in words}",
        "grid = [[0 for _ in range(3)] for _ in range(3)]",
    ],
)
def test_comprehension_forms(code):
    assert check_construct(code, "comprehension").detected

def test_generator_expression_is_not_a_list_comprehension():
    assert check_construct("total = sum(x * x for x in xs)", "generator-expr").detected
    assert not check_construct("total = sum([x * x for x in xs])", "generator-expr").detected
    assert not check_construct("for x in xs: print(x)", "generator-expr").detected

def test_generator_inside_brackets_is_not_a_comprehension():
    code = "rows = [tuple(x for x in row)]"
    assert not check_construct(code, "comprehension").detected
    assert check_construct(code, "generator-expr").detected
    assert check_construct("[f(g(x)) for x in xs]", "comprehension").detected
    assert check_construct("{k: len(v) for k, v in d.items()}", "comprehension").detected

def test_fstring_requires_interpolation():
    assert check_construct('print(f"Hello {name}")', "f-string").detected
    assert check_construct("msg = F'{a} and {b}'", "f-string").detected
    assert not check_construct('print(f"Hello")', "f-string").detected
    assert not check_construct('print("{name}".format(name=n))', "f-string").detected
    assert not check_construct('print(f"{{literal}}")', "f-string").detected

def test_ternary():
    assert check_construct("label = 'even' if n % 2 == 0 else 'odd'", "ternary").detected
    assert not check_construct("if n:\n    x = 1\nelse:\n    x = 2", "ternary").detected
    assert not check_construct("[x for x in xs if x]", "ternary").detected

def test_enumerate_and_zip_are_whole_words():
    assert check_construct("for i, v in enumerate(xs):", "enumerate").detected
    assert not check_construct("reenumerate_items(xs)", "enumerate").detected
    assert check_construct("pairs = list(zip(a, b))", "zip").detected
    assert not check_construct("import zipfile\nzipfile.ZipFile(p)", "zip").detected
    assert not check_construct("archive.zip(a)", "zip").detected

def test_lambda():
    assert check_construct("key=lambda p: p[1]", "lambda").detected
    assert not check_construct("lambdas = []", "lambda").detected

def test_unknown_construct_type():
    result = check_construct("s[1:4]", "walrus")
    assert result.detected is False
    assert result.construct_type == "walrus"

def test_check_any_construct_first_match_wins():
    code = "pairs = [(i, v) for i, v in enumerate(xs)]"
    result = check_any_construct(code, ["slice", "enumerate", "comprehension"])
    assert result.detected
    assert result.construct_type == "enumerate"
    none = check_any_construct("x = 1", ["slice", "lambda"])
    assert none.detected is False
    assert none.construct_type is None

def test_strip_strings_and_comments():
    assert strip_strings_and_comments('x = "a#b"  # note') == 'x = ""  '
    assert strip_strings_and_comments('s = """multi\nline"""\ny = 1') == 's = ""\ny = 1'
    assert strip_strings_and_comments('f"{a}" + rb"raw"') == 'f"{_}" + ""'

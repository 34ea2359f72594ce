import pytest

# This test configuration runs every test twice:
# 1) with the pure-Python LEB128 operand codec ["codec_py"]
# 2) with the Cython operand codec (if built) ["codec_cy"]
# The VM binds the codec functions when it is constructed, so switching the
# backend here is enough; no test needs to know which one it runs with.


@pytest.fixture(params=["codec_py", "codec_cy"])
def codec_mode(request):
    return request.param


@pytest.fixture(autouse=True)
def _force_codec_backend(codec_mode):
    from kestrel.compiler import leb128
    if codec_mode == "codec_cy":
        pytest.importorskip("kestrel.compiler._leb128_cy")
        leb128.use_backend("cy")
    else:
        leb128.use_backend("py")
    yield
    leb128.use_backend("py")


@pytest.fixture
def env():
    from kestrel.types.environment import Environment
    from kestrel.builtin.primitives import register
    e = Environment()
    register(e)
    return e


@pytest.fixture
def interp():
    from kestrel.interpreter import Interpreter
    return Interpreter()

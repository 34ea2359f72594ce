# setup.py
from setuptools import setup, Extension, find_packages
import os

# Full path to the pyx
pyx_path = os.path.join("kestrel", "compiler", "_leb128_cy.pyx")

try:
    from Cython.Build import cythonize
except ImportError:
    # Cython is optional: without it only the pure-Python codec is installed
    ext_modules = []
else:
    ext_modules = cythonize(
        Extension(
            name="kestrel.compiler._leb128_cy",  # module path for import
            sources=[pyx_path],
        ),
        compiler_directives={'language_level': "3", "boundscheck": False, "wraparound": False}
    )

setup(
    name="kestrel",
    version="0.1.0",
    description="Tagged values, a stack bytecode VM and class-based message dispatch",
    packages=find_packages(include=["kestrel", "kestrel.*"]),
    package_data={"kestrel.compiler": ["*.pyx"]},
    python_requires=">=3.9",
    ext_modules=ext_modules,
    extras_require={
        "test": ["pytest"],
        "speedups": ["Cython"],
    },
    zip_safe=False,
)

"""
uiblocks: Static/Dynamic Block Optimization for Declarative UI Trees

Speeds up re-rendering of declarative element trees through:
1. Static/dynamic block classification driven by a purity oracle
2. A memoization decision policy per element block
3. Fine-grained patch instructions keyed by data dependencies
4. Hoisting of fully static subtrees into module-level constants
5. A runtime memo/patch cache consumed by the render loop
"""

from setuptools import setup, find_packages

setup(
    name="uiblocks",
    version="1.0.0",
    description="Static/dynamic block optimization for declarative UI element trees",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    author="uiblocks contributors",
    python_requires=">=3.10",
    packages=find_packages(exclude=["tests", "tests.*", "benchmarks", "benchmarks.*"]),
    extras_require={
        "dev": [
            "pytest>=7.0",
        ]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Compilers",
        "Topic :: Software Development :: User Interfaces",
    ],
)

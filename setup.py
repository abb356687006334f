from setuptools import setup, find_packages

setup(
    name="copra_graph",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "scipy",
        "scikit-learn",
        "pandas",
        "numba",
        "click",
    ],
    extras_require={
        "test": ["pytest"],
    },
    description="Overlapping community detection (COPRA) with incremental batch updates",
    python_requires=">=3.8",
)

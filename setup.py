from setuptools import setup, find_packages

setup(
    name="motolang",
    version="0.1.0",
    packages=find_packages(include=["motolang", "motolang.*"]),
    py_modules=["moto"],
    package_data={"motolang": ["grammar.lark"]},
    include_package_data=True,
    install_requires=[
        "lark>=1.1",
        "pydantic>=2.0",
        "loguru>=0.7",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": [
            "moto=moto:main",
        ],
    },
    python_requires=">=3.10",
)

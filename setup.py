from setuptools import setup, find_packages


with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="flushplan",
    version="0.3.0",
    description="Filament load ordering that minimizes purge volume in multi-material 3D printing.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    packages=find_packages(exclude=("tests", "tests.*")),
    package_data={"flushplan.schemas": ["*.json"]},
    python_requires=">=3.10",
    install_requires=[
        "networkx",
        "numpy",
        "pandas",
        "pyyaml",
        "jsonschema",
    ],
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["flushplan=flushplan.cli:main"]},
)

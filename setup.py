"""Setup configuration for adoreports"""

from setuptools import setup, find_packages

setup(
    name="ado-build-reports",
    version="0.1.0",
    description=(
        "CLI tool for Azure DevOps build reports: test outcome summaries, recent "
        "pipeline builds, window statistics and batched pull request comments."
    ),
    author="ADO Build Reports Contributors",
    author_email="",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "requests>=2.28.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "black>=22.0",
            "flake8>=4.0",
            "mypy>=0.950",
        ],
    },
    entry_points={
        "console_scripts": [
            "ado-build-reports=adoreports.main:main",
        ],
    },
)

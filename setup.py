import setuptools
from pathlib import Path

# Read the long description from README.md
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text()

setuptools.setup(
    name="structiq",
    version="0.1.0",
    author="Nucleusbox",
    author_email="info@nucleusbox.com",
    description="StructIQ turns free-form language model text into typed, validated outputs. It provides declarative signatures, marker and JSON adapters with a deterministic fallback chain, output repair and coercion, streaming marker filtering, and a ReAct tool loop that always terminates with a structured answer.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    package_dir={"": "src"},
    packages=setuptools.find_packages(where="src", exclude=["*.tests", "*.tests.*"]),
    python_requires=">=3.10,<4.0",
    install_requires=[
        "pydantic>=2.0",
        "typing_extensions>=4.5",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    include_package_data=True,
)

from pathlib import Path

from setuptools import find_namespace_packages, setup

# Load packages from requirements.txt
BASE_DIR = Path(__file__).parent
with open(Path(BASE_DIR, "requirements.txt")) as file:
    required_packages = [ln.strip() for ln in file.readlines() if ln.strip()]

# Define our package
setup(
    name="synapse",
    version="0.1.0",
    description="Collaborative study rooms with AI-generated quizzes and gamified progress",
    python_requires=">=3.10",
    packages=find_namespace_packages(include=["synapse", "synapse.*"]),
    package_data={"synapse": ["schemas/*.schema.json"]},
    install_requires=required_packages,
    extras_require={
        "dev": ["pytest>=7.4", "httpx>=0.27"],
    },
)

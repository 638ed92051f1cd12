import pathlib

from setuptools import find_packages, setup


def get_version():
    """Gets the infbench version."""
    path = CWD / "infbench" / "__init__.py"
    content = path.read_text()

    for line in content.splitlines():
        if line.startswith("__version__"):
            return line.strip().split()[-1].strip().strip('"')
    raise RuntimeError("bad version data in __init__.py")


CWD = pathlib.Path(__file__).absolute().parent


setup(
    name="infbench",
    version=get_version(),
    description="Factorial plots of inference benchmark results",
    long_description=(CWD / "README.md").read_text(),
    long_description_content_type="text/markdown",
    license="MIT",
    packages=find_packages(include=["infbench", "infbench.*"]),
    package_data={"infbench.configs": ["*.yaml"]},
    python_requires=">=3.9",
    install_requires=["numpy>=1.22", "pandas", "matplotlib", "pyyaml", "tqdm"],
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["infbench=infbench.cli:main"]},
    include_package_data=True,
)

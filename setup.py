import os.path

from setuptools import find_namespace_packages, setup


README = os.path.join(os.path.abspath(os.path.dirname(__file__)), "README.rst")


BASE = "omen"
PACKAGES = [BASE]

for name in find_namespace_packages(BASE):
    PACKAGES.append("{}.{}".format(BASE, name))


setup(name="OMEN",
      description="Mention notifications for game servers, with cached player preferences.",
      long_description=open(README).read(),
      long_description_content_type="text/x-rst",
      license="BSD 3-Clause License",
      platforms=["Any"],
      packages=PACKAGES,
      entry_points={"console_scripts": ["omen=omen.__main__:entrypoint"]},
      python_requires=">=3.7",
      install_requires=["peewee>=3.13.0",
                        "cachetools>=4.2.0"],
      extras_require={"runner": ["anyconfig>=0.11.1",
                                 "ruamel.yaml>=0.15.75"],
                      "uv": ["uvloop>=0.12.0"],
                      "mysql": ["pymysql>=0.9.3"],
                      "test": ["anyconfig>=0.11.1",
                               "pymysql>=0.9.3",
                               "pytest>=7.0.0",
                               "pytest-asyncio>=0.21.0"]},
      classifiers=["Development Status :: 4 - Beta",
                   "Intended Audience :: Developers",
                   "Topic :: Games/Entertainment",
                   "Topic :: Software Development :: Libraries"])

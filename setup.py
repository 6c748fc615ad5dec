import io

import setuptools

name = 'chaoshornet'
desc = 'Container orchestration and chaos harness for ledger node integration tests.'

author = "chaoshornet contributors"

packages = setuptools.find_packages(include=['chaoshornet', 'chaoshornet.*'])

test_require = []
with io.open('requirements-dev.txt') as f:
    test_require = [l.strip() for l in f if l.strip() and not l.startswith('#')]

install_require = []
with io.open('requirements.txt') as f:
    install_require = [l.strip() for l in f if l.strip() and not l.startswith('#')]

setup_params = dict(
    name=name,
    version='0.1.0',
    description=desc,
    author=author,
    packages=packages,
    install_requires=install_require,
    extras_require={'test': test_require},
    python_requires='>=3.7',
)


def main():
    """Package installation entry point."""
    setuptools.setup(**setup_params)


if __name__ == '__main__':
    main()

from setuptools import setup, find_packages


install_requires = [
    'PyYAML>=3.0',
    'jsonschema>=4',
    'werkzeug<4',
    'Pillow>=8,!=8.3.0,!=8.3.1;python_version=="3.9"',
    'Pillow>=9;python_version=="3.10"',
    'Pillow>=10;python_version=="3.11"',
    'Pillow>=10.1;python_version=="3.12"',
    'Pillow>=11;python_version=="3.13"',
    'python-dateutil',
    'requests'
]

tests_require = [
    'pytest',
    'WebTest',
]


def long_description(changelog_releases=10):
    import re

    readme = open('README.md').read()
    changes = ['\nChanges\n-------\n']
    version_line_re = re.compile(r'^\d\.\d+\.\d+\S*\s20\d\d-\d\d-\d\d')
    for line in open('CHANGES.txt'):
        if version_line_re.match(line):
            if changelog_releases == 0:
                break
            changelog_releases -= 1
        changes.append(line)
    return readme + ''.join(changes)


setup(
    name='TileLoop',
    version="0.3.0",
    description='Time-synchronized weather tile delivery and caching',
    long_description=long_description(7),
    long_description_content_type='text/markdown',
    author='TileLoop contributors',
    url='https://github.com/tileloop/tileloop',
    license='Apache Software License 2.0',
    packages=find_packages(),
    include_package_data=True,
    entry_points={
        'console_scripts': [
            'tileloop-prefetch = tileloop.script.prefetch:main',
            'tileloop-util = tileloop.script.util:main',
        ],
    },
    package_data={'': ['*.yaml', '*.wsgi', '*.ini', '*.json']},
    install_requires=install_requires,
    extras_require={'test': tests_require},
    classifiers=[
        "Development Status :: 4 - Beta",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Internet :: Proxy Servers",
        "Topic :: Internet :: WWW/HTTP :: WSGI",
        "Topic :: Scientific/Engineering :: Atmospheric Science",
    ],
    zip_safe=False
)

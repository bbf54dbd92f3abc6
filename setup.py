"""
SPDX-License-Identifier: Apache-2.0
"""

import setuptools

if __name__ == "__main__":
    setuptools.setup(
        name="permcheck",
        version="0.1.0",
        description="ACL evaluation with cached group membership for identity service users",
        license="Apache-2.0",
        packages=setuptools.find_packages(include=["permcheck", "permcheck.*"]),
        python_requires=">=3.9",
        install_requires=["PyYAML"],
        extras_require={"test": ["pytest"]},
        entry_points={
            "console_scripts": [
                "permcheck = permcheck.cmd.check:main",
            ],
        },
    )

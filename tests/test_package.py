import pytest

from aurbuild.modules.pacman import PacmanError
from aurbuild.modules.package import AUR, PACMAN, InstalledInfo, Package, PackageInfo
from aurbuild.modules.recipe import RecipeNotFoundError


@pytest.mark.parametrize("installed,expected", [
    (None, False),
    ("1.2-1", True),
    ("1.1-1", False),
    ("1.2-2", False),
])
def test_already_installed_is_exact_match(make_package, installed, expected):
    assert make_package("foo", version="1.2-1", installed=installed).already_installed() is expected


def test_packages_are_identified_by_name(make_package):
    a = make_package("foo", version="1.0-1")
    b = make_package("foo", origin=PACMAN, version="2.0-1")
    assert a == b
    assert len({a, b}) == 1
    assert a != make_package("bar")


def test_pacman_package_has_no_dependencies():
    pkg = Package("cmake", PACMAN, PackageInfo("3.27-1", "x86_64", ("curl",)))
    assert pkg.depends == ()
    assert repr(pkg) == "Pacman(cmake-3.27-1)"


def test_unknown_origin():
    with pytest.raises(ValueError):
        Package("foo", "pip", PackageInfo("1-1", "any"))


def test_artifact_name(make_package):
    pkg = make_package("foo-git", version="1.2-3", arch="any")
    assert pkg.artifact_name(".pkg.tar.zst") == "foo-git-1.2-3-any.pkg.tar.zst"
    assert repr(pkg) == "Aur(foo-git-1.2-3)"


def test_source_builds_aur_package(source, fake_host, fake_pacman):
    fake_host.recipes["foo-git"] = {"version": "1.2-3", "arch": "x86_64", "depends": ["bar", "cmake"]}
    fake_pacman.installed["foo-git"] = {"version": "1.2-2", "arch": "x86_64"}

    pkg = source.aur("foo-git")
    assert pkg.origin == AUR
    assert pkg.depends == ("bar", "cmake")
    assert pkg.installed == InstalledInfo("1.2-2", "x86_64")
    assert not pkg.already_installed()


def test_source_builds_pacman_package(source, fake_pacman):
    fake_pacman.remote["cmake"] = {"version": "3.27-1", "arch": "x86_64"}
    pkg = source.pacman_package("cmake")
    assert pkg.version == "3.27-1"
    assert pkg.installed is None


def test_source_pacman_package_not_found(source):
    with pytest.raises(PacmanError):
        source.pacman_package("ghost")


def test_source_aur_package_not_found(source):
    with pytest.raises(RecipeNotFoundError):
        source.aur("ghost")

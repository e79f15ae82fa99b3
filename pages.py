"""
Page registry for the admin dashboard.

Every navigable page of the dashboard is declared here once. The page key is
the unit of permission: user records grant access by listing page keys, and
the sidebar is derived from this catalog filtered by those grants.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence, Tuple


class PageKind(str, Enum):
    SINGLE = "single"
    GROUP = "group"
    ITEM = "item"


class RegistryError(ValueError):
    """Raised when a page catalog breaks the registry invariants"""


@dataclass(frozen=True)
class PageDescriptor:
    key: str
    label: str
    kind: PageKind
    path: Optional[str] = None
    parent_key: Optional[str] = None
    icon: Optional[str] = None
    description: Optional[str] = None

    @property
    def is_navigable(self) -> bool:
        return self.kind is not PageKind.GROUP


def single(key: str, label: str, path: str, icon: str = None, description: str = None) -> PageDescriptor:
    return PageDescriptor(key, label, PageKind.SINGLE, path=path, icon=icon, description=description)


def group(key: str, label: str, icon: str = None, description: str = None) -> PageDescriptor:
    return PageDescriptor(key, label, PageKind.GROUP, icon=icon, description=description)


def item(key: str, label: str, path: str, parent_key: str, icon: str = None, description: str = None) -> PageDescriptor:
    return PageDescriptor(
        key, label, PageKind.ITEM, path=path, parent_key=parent_key, icon=icon, description=description
    )


class PageRegistry:
    """Immutable, ordered catalog of pages with a group -> items index"""

    def __init__(self, pages: Sequence[PageDescriptor]):
        self._pages: Tuple[PageDescriptor, ...] = tuple(pages)
        self._by_key: Dict[str, PageDescriptor] = {}
        self._children: Dict[str, List[PageDescriptor]] = {}

        for page in self._pages:
            if page.key in self._by_key:
                raise RegistryError(f"Duplicate page key: {page.key}")
            self._check_shape(page)
            self._by_key[page.key] = page
            if page.kind is PageKind.GROUP:
                self._children[page.key] = []

        # Parents may be declared after their items, so link in a second pass
        for page in self._pages:
            if page.kind is not PageKind.ITEM:
                continue
            parent = self._by_key.get(page.parent_key)
            if parent is None or parent.kind is not PageKind.GROUP:
                raise RegistryError(f"Page '{page.key}' references unknown group '{page.parent_key}'")
            self._children[page.parent_key].append(page)

        self._by_path: Dict[str, PageDescriptor] = {
            page.path: page for page in self._pages if page.path is not None
        }

    @staticmethod
    def _check_shape(page: PageDescriptor):
        if page.kind is PageKind.GROUP:
            if page.path is not None or page.parent_key is not None:
                raise RegistryError(f"Group '{page.key}' cannot have a path or a parent")
        elif not page.path:
            raise RegistryError(f"Page '{page.key}' needs a path")
        elif page.kind is PageKind.SINGLE and page.parent_key is not None:
            raise RegistryError(f"Single page '{page.key}' cannot have a parent")
        elif page.kind is PageKind.ITEM and not page.parent_key:
            raise RegistryError(f"Item '{page.key}' needs a parent group")

    def __iter__(self) -> Iterator[PageDescriptor]:
        return iter(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def __contains__(self, key) -> bool:
        return key in self._by_key

    def all_pages(self) -> Tuple[PageDescriptor, ...]:
        return self._pages

    def children_of(self, group_key: str) -> Tuple[PageDescriptor, ...]:
        return tuple(self._children.get(group_key, ()))

    def get(self, key: str) -> Optional[PageDescriptor]:
        return self._by_key.get(key)

    def find_by_path(self, path: str) -> Optional[PageDescriptor]:
        return self._by_path.get(path.rstrip("/") or "/")

    def singles(self) -> List[PageDescriptor]:
        return [page for page in self._pages if page.kind is PageKind.SINGLE]

    def groups(self) -> List[PageDescriptor]:
        return [page for page in self._pages if page.kind is PageKind.GROUP]

    def navigable_keys(self) -> List[str]:
        return [page.key for page in self._pages if page.is_navigable]

    def pages_by_department(self) -> Dict[str, List[PageDescriptor]]:
        """Navigable pages keyed by their group's label ("General" for singles)"""
        departments: Dict[str, List[PageDescriptor]] = {}
        for page in self._pages:
            if not page.is_navigable:
                continue
            department = "General"
            if page.parent_key:
                department = self._by_key[page.parent_key].label
            departments.setdefault(department, []).append(page)
        return departments


# Dashboard catalog
DASHBOARD_PAGES = [
    single("dashboard", "Dashboard", "/admin/dashboard", "LayoutDashboard", "Hospital overview and KPIs"),
    single("pms", "PMS", "/admin/pms", "LineChart", "Performance management"),
    single("roster", "Roster", "/admin/roster", "Calendar", "Staff duty roster"),
    single("patient-profile", "Patient Profile", "/admin/patient-profile", "User", "Admitted patient records"),

    group("admission", "Admission", "UserCheck"),
    item("admission-add-patient", "Add Patient", "/admin/admission/add-patient", "admission", "Users"),
    item("admission-department-selection", "Department Selection",
         "/admin/admission/department-selection", "admission", "Building"),

    group("ipd", "IPD", "Bed"),
    item("ipd-admission", "IPD Admission", "/admin/ipd/admission", "ipd", "Bed"),

    group("nurse-station", "Nurse Station", "Activity"),
    item("nurse-station-assign-task", "Assign Task", "/admin/nurse-station/assign-task", "nurse-station",
         "ClipboardList"),
    item("nurse-station-task-list", "Task List", "/admin/nurse-station/task-list", "nurse-station",
         "CheckSquare"),
    item("nurse-station-score-dashboard", "Score Dashboard", "/admin/nurse-station/score-dashboard",
         "nurse-station", "BarChart3"),

    group("rmo", "RMO", "Stethoscope"),
    item("rmo-assign-task", "Assign Task", "/admin/rmo/assign-task", "rmo", "ClipboardList"),
    item("rmo-task-list", "Task List", "/admin/rmo/task-list", "rmo", "CheckSquare"),
    item("rmo-score-dashboard", "Score Dashboard", "/admin/rmo/score-dashboard", "rmo", "BarChart3"),

    group("ot", "OT", "Scissors"),
    item("ot-assign-ot-time", "Assign OT Time", "/admin/ot/assign-ot-time", "ot", "Clock"),
    item("ot-staff-assign", "OT Staff Assign", "/admin/ot/staff-assign", "ot", "UserCog"),

    group("lab", "Lab", "FlaskConical"),
    item("lab-advice", "Lab Advice", "/admin/lab/advice", "lab", "FileText"),
    item("lab-payment-slip", "Payment Slip", "/admin/lab/payment-slip", "lab", "FileText"),
    item("lab-pathology", "Pathology", "/admin/lab/pathology", "lab", "FlaskConical"),
    item("lab-xray", "X-Ray", "/admin/lab/xray", "lab", "Activity"),
    item("lab-ct-scan", "CT Scan", "/admin/lab/ct-scan", "lab", "Activity"),
    item("lab-usg", "USG", "/admin/lab/usg", "lab", "Activity"),

    group("pharmacy", "Pharmacy", "Pill"),
    item("pharmacy-indent", "Indent", "/admin/pharmacy/indent", "pharmacy", "ClipboardList"),
    item("pharmacy-approval", "Approval", "/admin/pharmacy/approval", "pharmacy", "CheckSquare"),
    item("pharmacy-store", "Store", "/admin/pharmacy/store", "pharmacy", "Pill"),

    group("discharge", "Discharge", "History"),
    item("discharge-patient", "Discharge Patient", "/admin/discharge/patient", "discharge", "User"),
    item("discharge-initiation", "Initiation by RMO", "/admin/discharge/initiation", "discharge",
         "Stethoscope"),
    item("discharge-complete-file", "Complete File Work", "/admin/discharge/complete-file", "discharge",
         "FileText"),
    item("discharge-concern-department", "Concern Department", "/admin/discharge/concern-department",
         "discharge", "Building"),
    item("discharge-concern-authority", "Concern Authority", "/admin/discharge/concern-authority",
         "discharge", "Shield"),
    item("discharge-bill", "Discharge Bill", "/admin/discharge/bill", "discharge", "FileText"),

    group("masters", "Masters", "Key"),
    item("masters-all-staff", "All Staff", "/admin/masters/all-staff", "masters", "Users"),
    item("masters-medicine", "Medicine", "/admin/masters/medicine", "masters", "Pill"),
    item("masters-department", "Department", "/admin/masters/department", "masters", "Building"),
    item("masters-tests", "Tests", "/admin/masters/tests", "masters", "FlaskConical"),
    item("masters-floor-bed", "Floor & Bed", "/admin/masters/floor-bed", "masters", "Bed"),
    item("masters-doctors", "Doctors", "/admin/masters/doctors", "masters", "Stethoscope"),
    item("masters-manage-users", "Manage Users", "/admin/masters/manage-users", "masters", "UserCog",
         "Create users and assign page access"),
]

REGISTRY = PageRegistry(DASHBOARD_PAGES)

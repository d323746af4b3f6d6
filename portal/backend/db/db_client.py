import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4
import asyncpg
from datetime import datetime, timezone, date

from ..models.db_models import (
    Account, SuperAdmin, University, School, SchoolAccessGrants, SchoolAccessMode,
    TeacherProfile, TeacherAssignment, TeacherClass, RosterEntry, AttendanceRecord,
)
from portal.shared.roles import AccountKind, Role

logger = logging.getLogger(__name__)

# Hesap türü -> tablo eşlemesi. Tablo adları sabittir, kullanıcı girdisinden gelmez.
_ACCOUNT_TABLES = {
    AccountKind.STAFF: "users",
    AccountKind.STUDENT: "students",
    AccountKind.PARENT: "parents",
}

_TEACHER_COLUMNS = """
    tp.id, tp.user_id, tp.school_id, tp.employee_code, tp.first_name, tp.last_name,
    u.email, tp.department, tp.designation, tp.employment_type, tp.status,
    tp.joining_date, tp.phone, tp.experience_years, u.is_active, tp.created_at
"""

# PATCH ile güncellenebilen teacher_profiles kolonları
TEACHER_UPDATABLE_FIELDS = (
    "first_name", "last_name", "department", "designation", "employment_type",
    "status", "joining_date", "phone", "experience_years",
)


def new_id() -> str:
    return str(uuid4())


class AsyncPostgresClient:
    """
    Tüm veritabanı operasyonlarını yöneten PostgreSQL istemcisi.
    Tenant (üniversite) filtresi her sorguda açıkça uygulanır.
    """
    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    # ===== Tenant & School =====

    async def get_university(self, university_id: str) -> Optional[University]:
        query = "SELECT id, code, name, address, city, state, phone, email, website FROM universities WHERE id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, university_id)
            return University(**record) if record else None

    async def get_university_by_code(self, code: str) -> Optional[University]:
        query = "SELECT id, code, name, address, city, state, phone, email, website FROM universities WHERE code = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, code.upper())
            return University(**record) if record else None

    async def get_schools_by_code(self, code: str, university_code: Optional[str] = None) -> List[School]:
        """Okul koduna göre okulları getirir. Kod yalnızca üniversite içinde tekildir."""
        query = """
            SELECT s.id, s.university_id, s.code, s.name, s.type, s.is_active
            FROM schools s JOIN universities un ON un.id = s.university_id
            WHERE s.code = $1 AND ($2::text IS NULL OR un.code = $2);
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, code.upper(), university_code.upper() if university_code else None)
            return [School(**record) for record in records]

    async def get_school(self, school_id: str) -> Optional[School]:
        query = "SELECT id, university_id, code, name, type, is_active FROM schools WHERE id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, school_id)
            return School(**record) if record else None

    async def list_schools(self, university_id: str, school_ids: Optional[List[str]] = None) -> List[School]:
        """school_ids None ise üniversitedeki tüm okulları döndürür."""
        query = """
            SELECT id, university_id, code, name, type, is_active FROM schools
            WHERE university_id = $1 AND ($2::text[] IS NULL OR id = ANY($2))
            ORDER BY name;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, university_id, school_ids)
            return [School(**record) for record in records]

    async def create_school(self, university_id: str, code: str, name: str, school_type: str) -> School:
        query = """
            INSERT INTO schools (id, university_id, code, name, type)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING id, university_id, code, name, type, is_active;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, new_id(), university_id, code.upper(), name, school_type)
            return School(**record)

    async def register_university(self, university: Dict[str, Any], admin: Dict[str, Any]) -> Tuple[University, SuperAdmin]:
        """Üniversiteyi ve ilk super admin'i tek bir transaction içinde oluşturur."""
        university_id, admin_id = new_id(), new_id()
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                uni_record = await connection.fetchrow(
                    """
                    INSERT INTO universities (id, code, name, address, city, state, phone, email, website)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    RETURNING id, code, name, address, city, state, phone, email, website;
                    """,
                    university_id, university["code"].upper(), university["name"], university.get("address"),
                    university.get("city"), university.get("state"), university.get("phone"),
                    university.get("email"), university.get("website"),
                )
                admin_record = await connection.fetchrow(
                    """
                    INSERT INTO super_admins (id, university_id, name, email, password_hash, phone, school_access_mode)
                    VALUES ($1, $2, $3, $4, $5, $6, $7)
                    RETURNING id, university_id, name, email, password_hash, is_active, last_login_at, school_access_mode;
                    """,
                    admin_id, university_id, admin["name"], admin["email"], admin["password_hash"],
                    admin.get("phone"), SchoolAccessMode.ALL_SCHOOLS.value,
                )
        return University(**uni_record), SuperAdmin(**admin_record)

    # ===== Accounts =====

    async def get_super_admin_by_email(self, email: str) -> Optional[SuperAdmin]:
        query = """
            SELECT id, university_id, name, email, password_hash, is_active, last_login_at, school_access_mode
            FROM super_admins WHERE email = $1;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, email)
            return SuperAdmin(**record) if record else None

    async def get_super_admin(self, super_admin_id: str, university_id: str) -> Optional[SuperAdmin]:
        query = """
            SELECT id, university_id, name, email, NULL AS password_hash, is_active, last_login_at, school_access_mode
            FROM super_admins WHERE id = $1 AND university_id = $2;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, super_admin_id, university_id)
            return SuperAdmin(**record) if record else None

    async def get_school_account(self, account_kind: AccountKind, email: str, school: School) -> Optional[Account]:
        """Okula bağlı bir hesabı (staff, öğrenci, veli) e-posta ile bulur."""
        table = _ACCOUNT_TABLES[account_kind]
        if account_kind == AccountKind.STAFF:
            role_column = "role"
        elif account_kind == AccountKind.STUDENT:
            role_column = f"'{Role.STUDENT.value}'"
        else:
            role_column = f"'{Role.PARENT.value}'"
        status_column = "status" if account_kind == AccountKind.STUDENT else "NULL"
        query = f"""
            SELECT id, name, email, password_hash, {role_column} AS role, school_id,
                   is_active, last_login_at, {status_column} AS status
            FROM {table} WHERE email = $1 AND school_id = $2;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, email, school.id)
            return Account(**record, university_id=school.university_id) if record else None

    async def touch_last_login(self, account_kind: AccountKind, account_id: str):
        table = "super_admins" if account_kind == AccountKind.SUPER_ADMIN else _ACCOUNT_TABLES[account_kind]
        query = f"UPDATE {table} SET last_login_at = $2 WHERE id = $1;"
        async with self._pool.acquire() as connection:
            await connection.execute(query, account_id, datetime.now(timezone.utc))

    async def list_school_admins(self, university_id: str, school_ids: Optional[List[str]] = None) -> List[Account]:
        query = """
            SELECT u.id, u.name, u.email, NULL AS password_hash, u.role, u.school_id,
                   s.university_id, u.is_active, u.last_login_at
            FROM users u JOIN schools s ON s.id = u.school_id
            WHERE u.role = 'ADMIN' AND s.university_id = $1 AND ($2::text[] IS NULL OR u.school_id = ANY($2))
            ORDER BY u.created_at DESC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, university_id, school_ids)
            return [Account(**record) for record in records]

    async def create_staff_user(self, school: School, name: str, email: str, password_hash: str, role: Role) -> Account:
        query = """
            INSERT INTO users (id, school_id, name, email, password_hash, role)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING id, name, email, role, school_id, is_active, last_login_at;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, new_id(), school.id, name, email, password_hash, role.value)
            return Account(**record, university_id=school.university_id)

    # ===== School Access Grants =====

    async def get_school_access_grants(self, super_admin_id: str, university_id: str) -> Optional[SchoolAccessGrants]:
        """
        Super admin'in erişim modunu ve grant satırlarını tek sorguda getirir.
        Başka bir üniversiteye ait okullar sorgu tarafından elenir.
        """
        query = """
            SELECT sa.id, sa.school_access_mode,
                   COALESCE(array_agg(g.school_id) FILTER (WHERE g.school_id IS NOT NULL), '{}') AS school_ids
            FROM super_admins sa
            LEFT JOIN super_admin_school_access g
                   ON g.super_admin_id = sa.id AND g.university_id = sa.university_id
            WHERE sa.id = $1 AND sa.university_id = $2
            GROUP BY sa.id, sa.school_access_mode;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, super_admin_id, university_id)
        if not record:
            return None
        return SchoolAccessGrants(
            super_admin_id=record["id"],
            mode=SchoolAccessMode(record["school_access_mode"]),
            school_ids=sorted(record["school_ids"]),
        )

    async def add_school_access_grant(self, super_admin_id: str, school: School):
        """Grant ekler ve aynı transaction içinde modu SPECIFIC_SCHOOLS yapar."""
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                await connection.execute(
                    """
                    INSERT INTO super_admin_school_access (super_admin_id, school_id, university_id)
                    VALUES ($1, $2, $3) ON CONFLICT (super_admin_id, school_id) DO NOTHING;
                    """,
                    super_admin_id, school.id, school.university_id,
                )
                await connection.execute(
                    "UPDATE super_admins SET school_access_mode = $2 WHERE id = $1;",
                    super_admin_id, SchoolAccessMode.SPECIFIC_SCHOOLS.value,
                )

    async def remove_school_access_grant(self, super_admin_id: str, school_id: str) -> bool:
        """
        Grant'i siler. Son grant silindiğinde mod açıkça ALL_SCHOOLS'a döner;
        bu servis dışında boşalan bir grant kümesi SPECIFIC_SCHOOLS olarak kalır.
        """
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                result = await connection.execute(
                    "DELETE FROM super_admin_school_access WHERE super_admin_id = $1 AND school_id = $2;",
                    super_admin_id, school_id,
                )
                removed = result.split()[-1] != "0"
                remaining = await connection.fetchval(
                    "SELECT count(*) FROM super_admin_school_access WHERE super_admin_id = $1;",
                    super_admin_id,
                )
                if removed and remaining == 0:
                    await connection.execute(
                        "UPDATE super_admins SET school_access_mode = $2 WHERE id = $1;",
                        super_admin_id, SchoolAccessMode.ALL_SCHOOLS.value,
                    )
        return removed

    # ===== Teachers =====

    async def list_teachers(
        self,
        university_id: str,
        school_ids: Optional[List[str]],
        page: int,
        limit: int,
        search: Optional[str] = None,
        status: Optional[str] = None,
        department: Optional[str] = None,
    ) -> Tuple[List[TeacherProfile], int]:
        """Filtrelenmiş ve sayfalanmış öğretmen listesini ve toplam sayıyı döndürür."""
        where = """
            FROM teacher_profiles tp
            JOIN users u ON u.id = tp.user_id
            JOIN schools s ON s.id = tp.school_id
            WHERE s.university_id = $1
              AND ($2::text[] IS NULL OR tp.school_id = ANY($2))
              AND ($3::text IS NULL OR tp.status = $3)
              AND ($4::text IS NULL OR tp.department ILIKE '%' || $4 || '%')
              AND ($5::text IS NULL OR tp.first_name ILIKE '%' || $5 || '%'
                   OR tp.last_name ILIKE '%' || $5 || '%'
                   OR tp.employee_code ILIKE '%' || $5 || '%'
                   OR tp.department ILIKE '%' || $5 || '%'
                   OR tp.designation ILIKE '%' || $5 || '%'
                   OR u.email ILIKE '%' || $5 || '%')
        """
        args = [university_id, school_ids, status or None, department or None, search or None]
        list_query = f"SELECT {_TEACHER_COLUMNS} {where} ORDER BY tp.created_at DESC LIMIT $6 OFFSET $7;"
        count_query = f"SELECT count(*) {where};"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(list_query, *args, limit, (page - 1) * limit)
            total = await connection.fetchval(count_query, *args)
            teachers = [TeacherProfile(**record) for record in records]
            await self._attach_assignments(connection, teachers)
        return teachers, total

    async def _attach_assignments(self, connection, teachers: List[TeacherProfile]):
        if not teachers:
            return
        records = await connection.fetch(
            "SELECT id, teacher_id, grade, class_name, subject, academic_year FROM teacher_assignments WHERE teacher_id = ANY($1);",
            [t.id for t in teachers],
        )
        by_teacher: Dict[str, List[TeacherAssignment]] = {}
        for record in records:
            by_teacher.setdefault(record["teacher_id"], []).append(TeacherAssignment(**record))
        for teacher in teachers:
            teacher.assignments = by_teacher.get(teacher.id, [])

    async def get_teacher(self, teacher_id: str) -> Optional[TeacherProfile]:
        query = f"SELECT {_TEACHER_COLUMNS} FROM teacher_profiles tp JOIN users u ON u.id = tp.user_id WHERE tp.id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, teacher_id)
            if not record:
                return None
            teacher = TeacherProfile(**record)
            await self._attach_assignments(connection, [teacher])
            return teacher

    async def get_teacher_by_user(self, user_id: str) -> Optional[TeacherProfile]:
        query = f"SELECT {_TEACHER_COLUMNS} FROM teacher_profiles tp JOIN users u ON u.id = tp.user_id WHERE tp.user_id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id)
            return TeacherProfile(**record) if record else None

    async def create_teacher(self, school: School, user: Dict[str, Any], profile: Dict[str, Any]) -> TeacherProfile:
        """Staff kullanıcısını ve öğretmen profilini tek transaction içinde oluşturur."""
        user_id, teacher_id = new_id(), new_id()
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                await connection.execute(
                    """
                    INSERT INTO users (id, school_id, name, email, password_hash, role)
                    VALUES ($1, $2, $3, $4, $5, 'TEACHER');
                    """,
                    user_id, school.id, user["name"], user["email"], user["password_hash"],
                )
                await connection.execute(
                    """
                    INSERT INTO teacher_profiles (id, user_id, school_id, employee_code, first_name, last_name,
                        department, designation, employment_type, joining_date, phone, experience_years)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12);
                    """,
                    teacher_id, user_id, school.id, profile["employee_code"], profile["first_name"],
                    profile["last_name"], profile.get("department"), profile.get("designation"),
                    profile.get("employment_type"), profile.get("joining_date"), profile.get("phone"),
                    profile.get("experience_years"),
                )
        return await self.get_teacher(teacher_id)

    async def update_teacher(self, teacher_id: str, fields: Dict[str, Any]) -> Optional[TeacherProfile]:
        columns = [name for name in TEACHER_UPDATABLE_FIELDS if name in fields]
        if columns:
            assignments = ", ".join(f"{name} = ${index + 2}" for index, name in enumerate(columns))
            query = f"UPDATE teacher_profiles SET {assignments} WHERE id = $1;"
            async with self._pool.acquire() as connection:
                await connection.execute(query, teacher_id, *[fields[name] for name in columns])
        return await self.get_teacher(teacher_id)

    async def add_assignment(self, teacher_id: str, assignment: Dict[str, Any]) -> TeacherAssignment:
        query = """
            INSERT INTO teacher_assignments (id, teacher_id, grade, class_name, subject, academic_year)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING id, teacher_id, grade, class_name, subject, academic_year;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(
                query, new_id(), teacher_id, assignment["grade"], assignment["class_name"],
                assignment["subject"], assignment["academic_year"],
            )
            return TeacherAssignment(**record)

    async def remove_assignment(self, teacher_id: str, assignment_id: str) -> bool:
        query = "DELETE FROM teacher_assignments WHERE id = $1 AND teacher_id = $2;"
        async with self._pool.acquire() as connection:
            result = await connection.execute(query, assignment_id, teacher_id)
        return result.split()[-1] != "0"

    # ===== Attendance =====

    async def get_teacher_classes(self, teacher_id: str) -> List[TeacherClass]:
        """Öğretmenin sınıf öğretmeni olduğu aktif şubeleri getirir."""
        query = """
            SELECT csay.class_section_id, csay.academic_year_id, cs.school_id, cs.grade, cs.section,
                   ay.name AS academic_year_name
            FROM class_section_academic_years csay
            JOIN class_sections cs ON cs.id = csay.class_section_id
            JOIN academic_years ay ON ay.id = csay.academic_year_id
            WHERE csay.class_teacher_id = $1 AND csay.is_active = TRUE
            ORDER BY cs.grade, cs.section;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, teacher_id)
            return [TeacherClass(**record) for record in records]

    async def get_class_for_teacher(self, class_section_id: str, academic_year_id: str, teacher_id: str) -> Optional[TeacherClass]:
        query = """
            SELECT csay.class_section_id, csay.academic_year_id, cs.school_id, cs.grade, cs.section,
                   ay.name AS academic_year_name
            FROM class_section_academic_years csay
            JOIN class_sections cs ON cs.id = csay.class_section_id
            JOIN academic_years ay ON ay.id = csay.academic_year_id
            WHERE csay.class_section_id = $1 AND csay.academic_year_id = $2 AND csay.class_teacher_id = $3;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, class_section_id, academic_year_id, teacher_id)
            return TeacherClass(**record) if record else None

    async def get_roster(self, class_section_id: str, academic_year_id: str, on_date: date) -> List[RosterEntry]:
        """Aktif kayıtlı öğrencileri, o güne ait mevcut yoklama kayıtlarıyla birlikte getirir."""
        query = """
            SELECT e.student_id, e.roll_number, st.name, ar.status, COALESCE(ar.remarks, '') AS remarks
            FROM student_enrollments e
            JOIN students st ON st.id = e.student_id
            LEFT JOIN attendance_records ar
                   ON ar.student_id = e.student_id AND ar.academic_year_id = e.academic_year_id AND ar.date = $3
            WHERE e.class_section_id = $1 AND e.academic_year_id = $2 AND e.status = 'ACTIVE'
            ORDER BY e.roll_number ASC;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, class_section_id, academic_year_id, on_date)
            return [RosterEntry(**record) for record in records]

    async def upsert_attendance_records(self, records: List[AttendanceRecord]):
        """Yoklama kayıtlarını (PRESENT + ABSENT) ekler veya günceller."""
        if not records:
            return
        query = """
            INSERT INTO attendance_records (student_id, class_section_id, academic_year_id, date, status, remarks, marked_by_id)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (student_id, date, academic_year_id) DO UPDATE SET
                status = EXCLUDED.status,
                remarks = EXCLUDED.remarks,
                marked_by_id = EXCLUDED.marked_by_id,
                updated_at = now();
        """
        record_data = [(
            rec.student_id, rec.class_section_id, rec.academic_year_id, rec.date,
            rec.status.value, rec.remarks, rec.marked_by_id
        ) for rec in records]
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                await connection.executemany(query, record_data)

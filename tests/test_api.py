from conftest import login


def test_health(api):
    res = api.get("/health")
    assert res.status_code == 200
    assert res.json()["loading"] is False


def test_login_is_case_insensitive_on_username(api):
    res = api.post("/auth/login", json={"username": "ADMIN", "password": "admin123"})
    assert res.status_code == 200
    body = res.json()
    assert body["user"]["role"] == "admin"
    assert "password" not in body["user"]


def test_login_rejects_bad_password(api):
    res = api.post("/auth/login", json={"username": "admin", "password": "nope"})
    assert res.status_code == 401
    assert res.json()["detail"] == "Invalid username or password"


def test_inactive_user_cannot_login(api, ctx):
    ctx.save_user({"name": "Old", "username": "old", "password": "pw", "role": "staff", "active": False})
    res = api.post("/auth/login", json={"username": "old", "password": "pw"})
    assert res.status_code == 401


def test_me_requires_token(api, admin_headers):
    assert api.get("/auth/me").status_code == 401
    assert api.get("/auth/me", headers=admin_headers).json()["username"] == "admin"


def test_staff_validation(api, admin_headers):
    res = api.post("/users/staff", headers=admin_headers, json={"empId": "E1", "name": "A", "username": "ali"})
    assert res.status_code == 400
    assert res.json()["detail"] == "Password required"

    res = api.post("/users/staff", headers=admin_headers, json={"empId": "E1", "name": "A", "username": "ali", "password": "x"})
    assert res.status_code == 200
    assert res.json()["role"] == "staff"

    res = api.post("/users/staff", headers=admin_headers, json={"empId": "E2", "name": "B", "username": "ALI", "password": "y"})
    assert res.status_code == 400
    assert res.json()["detail"] == "Username exists"


def test_staff_cannot_manage_users(api, staff_headers):
    assert api.get("/users/staff", headers=staff_headers).status_code == 403


def test_admin_cannot_delete_self(api, admin_headers):
    me = api.get("/auth/me", headers=admin_headers).json()
    assert api.delete(f"/users/{me['key']}", headers=admin_headers).status_code == 400


def test_staff_sees_only_own_records(api, ctx, project_key, staff_headers, admin_headers):
    res = api.post("/records", headers=staff_headers, json={"formType": "gluebox", "projectKey": project_key, "date": "2024-03-05"})
    assert res.status_code == 200
    mine = res.json()["key"]
    ctx.save_record({"formType": "efk", "projectKey": project_key, "userKey": "someone", "date": "2024-03-05"})

    assert [r["key"] for r in api.get("/records", headers=staff_headers).json()] == [mine]
    assert len(api.get("/records", headers=admin_headers).json()) == 2


def test_staff_cannot_enter_for_unassigned_project(api, other_project_key, staff_headers):
    res = api.post("/records", headers=staff_headers, json={"formType": "efk", "projectKey": other_project_key})
    assert res.status_code == 403


def test_client_cannot_create_records(api, project_key, client_headers):
    res = api.post("/records", headers=client_headers, json={"formType": "efk", "projectKey": project_key})
    assert res.status_code == 403


def test_attendance_inside_fence(api, project_key, staff_headers):
    res = api.post("/records/attendance", headers=staff_headers, json={
        "projectKey": project_key, "timeIn": "09:00", "lat": 0.0, "lng": 0.0004,
    })
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["formType"] == "attendance"
    assert body["location"]["verified"] is True
    assert body["location"]["distance"] == 44


def test_attendance_outside_fence_rejected(api, project_key, staff_headers):
    res = api.post("/records/attendance", headers=staff_headers, json={"projectKey": project_key, "lat": 0.0, "lng": 0.0005})
    assert res.status_code == 400
    assert res.json()["detail"] == "Too far away: you are 56m from site (max: 50m)"


def test_attendance_without_fix_rejected(api, project_key, staff_headers):
    res = api.post("/records/attendance", headers=staff_headers, json={"projectKey": project_key, "locationError": "denied"})
    assert res.status_code == 400
    assert res.json()["detail"] == "Location required for attendance"


def test_location_check_reports_status(api, project_key, staff_headers):
    body = api.post("/records/location-check", headers=staff_headers, json={"projectKey": project_key, "lat": 0, "lng": 0.0005}).json()
    assert body["status"] == "fail"
    assert body["canSave"] is False


def test_record_pdf(api, project_key, staff_headers):
    key = api.post("/records", headers=staff_headers, json={
        "formType": "insecticide", "projectKey": project_key, "date": "2024-03-05",
    }).json()["key"]
    res = api.get(f"/records/{key}/pdf", headers=staff_headers)
    assert res.status_code == 200
    assert res.content.startswith(b"%PDF")


def test_signature_endpoint_renders_strokes(api, staff_headers):
    res = api.post("/records/signature", headers=staff_headers, json={"strokes": [[[10, 10], [60, 40]]]})
    assert res.json()["dataUrl"].startswith("data:image/png;base64,")


def test_custom_form_record_enforces_required(api, project_key, admin_headers, staff_headers):
    form = api.post("/forms", headers=admin_headers, json={
        "name": "Fumigation",
        "fields": [{"id": "area", "type": "text", "label": "Area", "required": True}],
    })
    assert form.status_code == 200, form.text
    key = form.json()["key"]

    res = api.post("/records", headers=staff_headers, json={"formType": key, "projectKey": project_key, "customData": {}})
    assert res.status_code == 400
    assert res.json()["detail"] == "Required: Area"

    res = api.post("/records", headers=staff_headers, json={
        "formType": key, "projectKey": project_key, "customData": {"area": "Kitchen"},
    })
    assert res.status_code == 200
    assert res.json()["customData"]["area"] == "Kitchen"


def test_form_field_editing(api, admin_headers):
    key = api.post("/forms", headers=admin_headers, json={"name": "Audit"}).json()["key"]
    api.post(f"/forms/{key}/fields", headers=admin_headers, json={"type": "text"})
    form = api.post(f"/forms/{key}/fields", headers=admin_headers, json={"type": "select"}).json()
    first, second = [f["id"] for f in form["fields"]]

    form = api.post(f"/forms/{key}/fields/1/move", headers=admin_headers, json={"direction": -1}).json()
    assert [f["id"] for f in form["fields"]] == [second, first]

    form = api.patch(f"/forms/{key}/fields/0", headers=admin_headers, json={"label": "Method"}).json()
    assert form["fields"][0]["label"] == "Method"

    form = api.delete(f"/forms/{key}/fields/1", headers=admin_headers).json()
    assert [f["id"] for f in form["fields"]] == [second]


def test_inventory_adjust_usage_and_cascade(api, project_key, admin_headers, staff_headers):
    product = api.post("/inventory/products", headers=admin_headers, json={
        "name": "Deltamethrin", "openingStock": 100, "minStock": 50,
    }).json()
    key = product["key"]
    assert product["currentStock"] == 100

    res = api.post(f"/inventory/products/{key}/adjust", headers=admin_headers, json={"type": "add", "qty": 0})
    assert res.status_code == 400
    assert res.json()["detail"] == "Enter valid quantity"

    assert api.post(f"/inventory/products/{key}/adjust", headers=admin_headers, json={"type": "add", "qty": 40}).json()["currentStock"] == 140

    usage = api.post("/inventory/usage", headers=staff_headers, json={"productKey": key, "projectKey": project_key, "qty": 100})
    assert usage.status_code == 200
    assert usage.json()["entryType"] == "staff_usage"

    product = api.get(f"/inventory/products/{key}", headers=staff_headers).json()
    assert product["currentStock"] == 40
    assert product["lowStock"] is True

    adjusted = api.post(f"/inventory/products/{key}/adjust", headers=admin_headers, json={"type": "adjust", "qty": 75}).json()
    assert adjusted["currentStock"] == 75

    pdf = api.get("/inventory/report.pdf", headers=admin_headers)
    assert pdf.content.startswith(b"%PDF")

    res = api.delete(f"/inventory/products/{key}", headers=admin_headers)
    assert res.json()["logsRemoved"] == 3
    assert api.get(f"/inventory/products/{key}", headers=admin_headers).status_code == 404


def test_usage_requires_project(api, admin_headers, staff_headers):
    key = api.post("/inventory/products", headers=admin_headers, json={"name": "Bait"}).json()["key"]
    res = api.post("/inventory/usage", headers=staff_headers, json={"productKey": key, "qty": 1})
    assert res.status_code == 400
    assert res.json()["detail"] == "Select a project"


def test_remarks_flow(api, client_headers, admin_headers):
    assert api.post("/remarks", headers=client_headers, json={"text": "  "}).status_code == 400
    assert api.post("/remarks", headers=client_headers, json={"text": "Rodents near dock"}).status_code == 200

    remarks = api.get("/remarks", headers=admin_headers).json()
    assert remarks[0]["text"] == "Rodents near dock"
    assert remarks[0]["userName"] == "Client One"
    assert remarks[0]["projectName"] == "Warehouse"

    assert api.delete(f"/remarks/{remarks[0]['key']}", headers=admin_headers).status_code == 200
    assert api.get("/remarks", headers=admin_headers).json() == []


def test_backup_download(api, admin_headers, staff_headers):
    assert api.get("/settings/backup", headers=staff_headers).status_code == 403
    res = api.get("/settings/backup", headers=admin_headers)
    assert res.status_code == 200
    assert set(res.json()) == {"users", "records", "projects", "remarks", "exportedAt"}
    assert "a2z_ipm_backup_" in res.headers["content-disposition"]


def test_profile_update_changes_password(api, staff_key, staff_headers):
    res = api.put("/settings/profile", headers=staff_headers, json={"name": "Tech Renamed", "password": "newpass"})
    assert res.status_code == 200
    assert res.json()["name"] == "Tech Renamed"
    login(api, "tech", "newpass")


def test_monthly_report_and_dashboard(api, project_key, staff_headers, admin_headers):
    api.post("/records", headers=staff_headers, json={"formType": "gluebox", "projectKey": project_key, "date": "2024-03-22"})
    report = api.get(f"/reports/monthly?project={project_key}&month=2024-03", headers=admin_headers).json()
    assert report["total"] == 1
    assert report["weekly"][3]["count"] == 1
    assert len(report["daily"]) == 31

    dash = api.get("/reports/dashboard", headers=staff_headers).json()
    assert [s["label"] for s in dash["stats"]] == ["My Projects", "Today's Entries", "Total Records"]


def test_numeric_entry_values_are_saved_and_listed(api, project_key, staff_headers):
    res = api.post("/records", headers=staff_headers, json={
        "formType": "gluebox", "projectKey": project_key, "entries": [{"location": 12, "count": 3}],
    })
    assert res.status_code == 200, res.text
    assert res.json()["entries"][0]["location"] == "12"

    res = api.post("/records", headers=staff_headers, json={
        "formType": "insecticide", "projectKey": project_key, "areas": ["Drain", 3],
    })
    assert res.status_code == 200, res.text
    assert res.json()["areas"] == ["Drain", "3"]

    assert len(api.get("/records", headers=staff_headers).json()) == 2


def test_malformed_record_payloads_are_client_errors(api, ctx, project_key, admin_headers, staff_headers):
    res = api.post("/records", headers=staff_headers, json={"formType": "gluebox", "projectKey": project_key, "entries": ["x"]})
    assert res.status_code == 400

    key = api.post("/forms", headers=admin_headers, json={
        "name": "Doses",
        "fields": [{"id": "t", "type": "table", "label": "Doses", "tableColumns": ["Room"]}],
    }).json()["key"]
    for custom_data in ({"tableRows": [1]}, {"tableRows": {"t": ["x"]}}):
        res = api.post("/records", headers=staff_headers, json={"formType": key, "projectKey": project_key, "customData": custom_data})
        assert res.status_code == 400
    assert ctx.raw("records") == []


def test_select_value_outside_options_rejected(api, project_key, admin_headers, staff_headers):
    key = api.post("/forms", headers=admin_headers, json={
        "name": "Method",
        "fields": [{"id": "m", "type": "select", "label": "Method", "options": ["Fog", "Spray"]}],
    }).json()["key"]
    res = api.post("/records", headers=staff_headers, json={"formType": key, "projectKey": project_key, "customData": {"m": "Zebra"}})
    assert res.status_code == 400
    res = api.post("/records", headers=staff_headers, json={"formType": key, "projectKey": project_key, "customData": {"m": "Fog"}})
    assert res.status_code == 200


def test_signature_canvas_size_is_bounded(api, staff_headers):
    for size in ({"width": -5}, {"width": 0}, {"width": 100000}, {"height": 100000}):
        res = api.post("/records/signature", headers=staff_headers, json={"strokes": [[[1, 1], [2, 2]]], **size})
        assert res.status_code == 422


def test_out_of_range_month_rejected(api, admin_headers):
    assert api.get("/inventory/report.pdf?month=0000-01", headers=admin_headers).status_code == 400
    assert api.get("/inventory/summary?month=2024-13", headers=admin_headers).status_code == 400

from coursehub.models import ContentType, Enrollment, Role


def test_signup_and_login(client, notifier):
    response = client.post("/auth/signup", json={
        "name": "Grace", "email": "grace@example.com", "password": "s3cret", "role": "Student",
    })
    assert response.status_code == 201
    assert response.json()["role"] == "Student"
    assert notifier.sent[0][:2] == ("grace@example.com", "welcome")

    assert client.post("/auth/signup", json={
        "name": "Grace", "email": "grace@example.com", "password": "x",
    }).status_code == 400

    login = client.post("/auth/login", json={"email": "grace@example.com", "password": "s3cret"})
    assert login.status_code == 200
    assert login.json()["user_id"] == response.json()["id"]
    assert client.post("/auth/login", json={"email": "grace@example.com", "password": "nope"}).status_code == 401


def test_unknown_caller_is_forbidden(client):
    response = client.post("/enrollments/", json={"course_id": 1}, headers={"X-User-Id": "404"})
    assert response.status_code == 403
    assert response.json() == {"kind": "forbidden", "detail": "Unknown user"}


def test_instructor_builds_course(client, instructor, student, headers):
    created = client.post("/courses/", headers=headers(instructor), json={
        "title": "Rust", "description": "Ownership", "category": "Programming", "level": "Advanced", "price": 25,
    })
    assert created.status_code == 201
    course_id = created.json()["id"]

    quiz = client.post(f"/courses/{course_id}/content", headers=headers(instructor), json={
        "type": "quiz", "title": "Borrowing",
        "questions": [{"question": "Who owns it?", "options": ["me", "you"], "answer": "me"}],
    })
    assert quiz.status_code == 201
    assert quiz.json()["type"] == "quiz"

    live = client.post(f"/courses/{course_id}/content", headers=headers(instructor), json={
        "type": "live", "title": "Office hours", "live_date": "2026-11-01T17:00:00",
    })
    assert live.status_code == 201

    assert client.post(f"/courses/{course_id}/content", headers=headers(instructor), json={
        "type": "hologram", "title": "??",
    }).status_code == 422

    assert client.post("/courses/", headers=headers(student), json={
        "title": "Nope", "category": "Design", "level": "Beginner",
    }).status_code == 403

    listed = client.get(f"/courses/{course_id}/content")
    assert [c["type"] for c in listed.json()] == ["quiz", "live"]
    assert client.get("/courses/", params={"category": "Programming"}).json()[0]["id"] == course_id


def test_duplicate_quiz_questions_rejected(client, instructor, make_course, headers):
    course = make_course()
    response = client.post(f"/courses/{course.id}/content", headers=headers(instructor), json={
        "type": "quiz", "title": "Dupes",
        "questions": [
            {"question": "same", "options": ["a"], "answer": "a"},
            {"question": "same", "options": ["b"], "answer": "b"},
        ],
    })
    assert response.status_code == 400
    assert response.json()["kind"] == "bad_request"


def test_enroll_and_list(client, db, make_course, student, instructor, headers):
    course = make_course(price=0)

    for _ in range(2):
        response = client.post("/enrollments/", headers=headers(student),
                               json={"course_id": course.id, "payment_status": "paid"})
        assert response.status_code == 201
        assert response.json()["payment_status"] == "free"
    assert db.query(Enrollment).count() == 1

    by_student = client.get("/enrollments/", params={"student": student.id}, headers=headers(student))
    by_course = client.get("/enrollments/", params={"course": course.id}, headers=headers(instructor))
    assert [e["course_id"] for e in by_student.json()] == [course.id]
    assert [e["student_id"] for e in by_course.json()] == [student.id]
    assert client.get("/enrollments/", headers=headers(student)).status_code == 400

    missing = client.post("/enrollments/", headers=headers(student), json={"course_id": 9999})
    assert missing.status_code == 404
    assert missing.json()["kind"] == "not_found"


def test_purchase_free_course_sends_emails(client, notifier, make_course, student, instructor, headers):
    course = make_course(price=0)

    response = client.post(f"/courses/{course.id}/purchase", headers=headers(student))

    assert response.status_code == 200
    assert response.json()["url"] is None
    assert response.json()["enrollment"]["payment_status"] == "free"
    assert {(to, template) for to, template, _ in notifier.sent} == {
        (student.email, "enrollment_confirmed"), (instructor.email, "new_enrollment"),
    }


def test_purchase_paid_course_returns_checkout(client, payments, make_course, student, headers):
    course = make_course(price=15)

    response = client.post(f"/courses/{course.id}/purchase", headers=headers(student))

    assert response.json() == {"url": f"https://checkout.test/session/{course.id}", "enrollment": None}


def test_purchase_confirm(client, payments, notifier, make_course, student, headers):
    course = make_course(price=15)
    payments.add("cs_ok", course.id, student.id, transaction_id="pi_ok")

    response = client.post("/enrollments/purchase-confirm", headers=headers(student),
                           json={"transaction_reference": "cs_ok"})

    assert response.status_code == 200
    assert response.json()["payment_status"] == "paid"
    assert response.json()["payment_intent_id"] == "pi_ok"
    assert len(notifier.sent) == 2


def test_purchase_confirm_survives_email_failure(client, db, payments, notifier, make_course, student, headers):
    course = make_course(price=15)
    payments.add("cs_ok", course.id, student.id)
    notifier.down = True

    response = client.post("/enrollments/purchase-confirm", headers=headers(student),
                           json={"transaction_reference": "cs_ok"})

    assert response.status_code == 200
    assert db.query(Enrollment).count() == 1


def test_purchase_confirm_upstream_failure(client, db, payments, make_course, student, headers):
    course = make_course(price=15)
    payments.add("cs_ok", course.id, student.id)
    payments.down = True

    response = client.post("/enrollments/purchase-confirm", headers=headers(student),
                           json={"transaction_reference": "cs_ok"})

    assert response.status_code == 502
    assert response.json()["kind"] == "upstream_failure"
    assert db.query(Enrollment).count() == 0


def test_content_complete_issues_certificate(client, notifier, make_course, make_content, student, headers):
    course = make_course(price=0)
    items = [make_content(course, ContentType.SLIDE, content_url=f"/slides/{i}") for i in range(2)]
    client.post("/enrollments/", headers=headers(student), json={"course_id": course.id})

    half = client.post(f"/enrollments/{course.id}/complete/{items[0].id}", headers=headers(student))
    assert half.json() == {"progress": 50, "certificate_issued": False, "certificate_url": None}

    full = client.post(f"/enrollments/{course.id}/complete/{items[1].id}", headers=headers(student))
    assert full.json()["progress"] == 100
    assert full.json()["certificate_issued"] is True
    assert ("certificate_issued" in {template for _, template, _ in notifier.sent})


def test_course_analytics_endpoint(client, make_course, student, instructor, headers):
    course = make_course(price=0)
    client.post("/enrollments/", headers=headers(student), json={"course_id": course.id})

    response = client.get(f"/enrollments/analytics/course/{course.id}", headers=headers(instructor))

    assert response.status_code == 200
    assert response.json()["total"] == 1
    assert response.json()["free"] == 1
    assert client.get(f"/enrollments/analytics/course/{course.id}", headers=headers(student)).status_code == 403


def test_quiz_flow(client, make_course, make_content, student, instructor, headers):
    quiz = make_content(make_course(), ContentType.QUIZ, questions=[
        {"question": "q1", "options": ["A", "B"], "answer": "A"},
        {"question": "q2", "options": ["A", "B"], "answer": "B"},
    ])

    result = client.post("/quiz-submissions/", headers=headers(student), json={
        "quiz_content_id": quiz.id, "answers": [{"question": "q1", "selected": "A"}, {"question": "q2", "selected": "X"}],
    })
    assert result.status_code == 201
    assert result.json() == {"score": 1, "answers": [
        {"question": "q1", "selected": "A", "correct": "A", "is_correct": True},
        {"question": "q2", "selected": "X", "correct": "B", "is_correct": False},
    ]}

    mine = client.get(f"/quiz-submissions/{quiz.id}", headers=headers(student))
    assert mine.json()["score"] == 1
    as_instructor = client.get(f"/quiz-submissions/{quiz.id}", params={"student": student.id},
                               headers=headers(instructor))
    assert as_instructor.status_code == 200
    assert client.get(f"/quiz-submissions/{quiz.id}", headers=headers(instructor)).status_code == 404

    analytics = client.get(f"/quiz-submissions/analytics/{quiz.id}", headers=headers(instructor))
    assert analytics.json()["total_submissions"] == 1
    assert analytics.json()["question_stats"][1]["most_common_wrong"] == "X"
    assert [(s["student_id"], s["score"]) for s in analytics.json()["submissions"]] == [(student.id, 1)]


def test_other_students_quiz_submission_is_private(client, make_user, make_course, make_content, student, headers):
    quiz = make_content(make_course(), ContentType.QUIZ, questions=[])
    other = make_user(Role.STUDENT)

    response = client.get(f"/quiz-submissions/{quiz.id}", params={"student": other.id}, headers=headers(student))

    assert response.status_code == 403


def test_assignment_flow(client, file_store, make_course, make_content, student, instructor, headers):
    assignment = make_content(make_course(), ContentType.ASSIGNMENT)

    missing = client.post("/assignment-submissions/", headers=headers(student),
                          data={"assignment_content_id": str(assignment.id)})
    assert missing.status_code == 400
    assert missing.json() == {"kind": "bad_request", "detail": "File is required"}

    submitted = client.post(
        "/assignment-submissions/", headers=headers(student),
        data={"assignment_content_id": str(assignment.id), "comments": "v1"},
        files={"file": ("essay.txt", b"hello", "text/plain")},
    )
    assert submitted.status_code == 201
    submission = submitted.json()
    assert file_store.files[submission["file_url"]] == b"hello"

    graded = client.put(f"/assignment-submissions/{submission['id']}/grade", headers=headers(instructor),
                        json={"grade": 8, "feedback": "Solid"})
    assert graded.json()["grade"] == 8
    assert graded.json()["graded_by"] == instructor.id

    listed = client.get(f"/assignment-submissions/all/{assignment.id}", headers=headers(instructor))
    assert listed.json()[0]["student_email"] == student.email

    own = client.get(f"/assignment-submissions/{assignment.id}", headers=headers(student))
    assert own.json()["feedback"] == "Solid"

    assert client.put(f"/assignment-submissions/{submission['id']}/grade", headers=headers(student),
                      json={"grade": 10}).status_code == 403


def test_enrollment_lists_are_not_public(client, make_user, make_course, student, instructor, headers):
    course = make_course(price=0)
    other = make_user(Role.STUDENT)
    client.post("/enrollments/", headers=headers(student), json={"course_id": course.id})

    assert client.get("/enrollments/", params={"course": course.id}, headers=headers(student)).status_code == 403
    assert client.get("/enrollments/", params={"student": student.id}, headers=headers(other)).status_code == 403
    by_staff = client.get("/enrollments/", params={"student": student.id}, headers=headers(instructor))
    assert [e["course_id"] for e in by_staff.json()] == [course.id]


def test_edit_and_delete_course(client, make_user, make_course, instructor, student, headers):
    course = make_course(price=10)
    stranger = make_user(Role.INSTRUCTOR)

    updated = client.put(f"/courses/{course.id}", headers=headers(instructor), json={"price": 0, "level": "Advanced"})
    assert updated.status_code == 200
    assert (updated.json()["price"], updated.json()["level"], updated.json()["title"]) == (0, "Advanced", course.title)
    assert client.put(f"/courses/{course.id}", headers=headers(stranger), json={"title": "Mine"}).status_code == 403

    client.post("/enrollments/", headers=headers(student), json={"course_id": course.id})
    blocked = client.delete(f"/courses/{course.id}", headers=headers(instructor))
    assert blocked.status_code == 409
    assert blocked.json()["kind"] == "conflict"

    empty = make_course()
    assert client.delete(f"/courses/{empty.id}", headers=headers(instructor)).json() == {"message": "Course deleted"}
    assert client.get(f"/courses/{empty.id}").status_code == 404


def test_edit_content(client, make_course, make_content, instructor, headers):
    video = make_content(make_course(), ContentType.VIDEO, content_url="https://videos.test/1")

    updated = client.put(f"/course-content/{video.id}", headers=headers(instructor),
                         json={"title": "Recut", "content_url": "https://videos.test/2"})
    assert updated.status_code == 200
    assert (updated.json()["title"], updated.json()["content_url"]) == ("Recut", "https://videos.test/2")

    wrong_field = client.put(f"/course-content/{video.id}", headers=headers(instructor), json={"notice_text": "hi"})
    assert wrong_field.status_code == 400
    assert client.get(f"/course-content/{video.id}").json()["title"] == "Recut"


def test_deleting_content_certifies_finished_students(client, notifier, make_course, make_content, student,
                                                       instructor, headers):
    course = make_course(price=0)
    items = [make_content(course, ContentType.SLIDE, content_url=f"/slides/{i}") for i in range(2)]
    client.post("/enrollments/", headers=headers(student), json={"course_id": course.id})
    client.post(f"/enrollments/{course.id}/complete/{items[0].id}", headers=headers(student))

    response = client.delete(f"/course-content/{items[1].id}", headers=headers(instructor))

    assert response.json() == {"message": "Content deleted"}
    enrollment = client.get("/enrollments/", params={"student": student.id}, headers=headers(student)).json()[0]
    assert enrollment["progress"] == 100
    assert enrollment["certificate_issued"] is True
    assert (student.email, "certificate_issued") in {(to, template) for to, template, _ in notifier.sent}
    assert client.get(f"/course-content/{items[1].id}").status_code == 404


def test_instructor_analytics_endpoint(client, payments, make_course, student, instructor, headers):
    course = make_course(price=15)
    payments.add("cs_ok", course.id, student.id)
    client.post("/enrollments/purchase-confirm", headers=headers(student), json={"transaction_reference": "cs_ok"})

    response = client.get(f"/enrollments/analytics/instructor/{instructor.id}", headers=headers(instructor))

    assert response.status_code == 200
    assert response.json()["total_earnings"] == 15
    summary = response.json()["courses"][0]
    assert (summary["course_id"], summary["paid"]) == (course.id, 1)
    assert summary["recent"][0]["student_name"] == student.name
    assert client.get(f"/enrollments/analytics/instructor/{instructor.id}",
                      headers=headers(student)).status_code == 403
